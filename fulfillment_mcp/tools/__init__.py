"""
Tools exposed over the protocol.

- base: Tool, OperationTool, ToolResult and content types
- schemas: JSON input schemas
- catalog: the fixed tool catalog bound to the orchestrator
- registry: name lookup, validation and error channel sorting
"""

from .base import ContentBlock, ContentType, OperationTool, Tool, ToolAnnotations, ToolResult
from .catalog import TOOL_DEFINITIONS, TOOL_NAMES, ToolDefinition, build_tools, register_all_tools
from .registry import ToolRegistry, ToolRegistryError

__all__ = [
    "TOOL_DEFINITIONS",
    "TOOL_NAMES",
    "ContentBlock",
    "ContentType",
    "OperationTool",
    "Tool",
    "ToolAnnotations",
    "ToolDefinition",
    "ToolRegistry",
    "ToolRegistryError",
    "ToolResult",
    "build_tools",
    "register_all_tools",
]
