"""
fulfillment-mcp - Order, inventory and customer operations over MCP

A JSON-RPC tool server that fronts a pluggable fulfillment backend.

Architecture:
    tools/call -> ToolRegistry -> ServiceOrchestrator -> AdapterManager -> Adapter

- adapters: capability contract, factory and the built-in in-memory adapter
- resilience: timeout, retry, circuit breaker, error classifier
- tools: tool catalog, schemas and registry
- server: JSON-RPC dispatcher and stdio transport
- runtime: wiring from settings
"""

__version__ = "1.0.0"

from .adapters import AdapterFactory, BaseFulfillmentAdapter, InMemoryAdapter, OperationOutcome
from .config import AppSettings, load_settings
from .errors import AdapterError, ErrorKind, FulfillmentError, ProtocolError
from .manager import AdapterManager
from .orchestrator import ServiceOrchestrator
from .runtime import RuntimeContext, build_runtime
from .server import FulfillmentMCPServer, StdioTransport
from .tools import ToolRegistry, ToolResult

__all__ = [
    "__version__",
    "AdapterError",
    "AdapterFactory",
    "AdapterManager",
    "AppSettings",
    "BaseFulfillmentAdapter",
    "ErrorKind",
    "FulfillmentError",
    "FulfillmentMCPServer",
    "InMemoryAdapter",
    "OperationOutcome",
    "ProtocolError",
    "RuntimeContext",
    "ServiceOrchestrator",
    "StdioTransport",
    "ToolRegistry",
    "ToolResult",
    "build_runtime",
    "load_settings",
]
