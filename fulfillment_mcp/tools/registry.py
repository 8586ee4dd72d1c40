"""
Tool Registry.

Maps tool name -> Tool and is the boundary where failures are sorted into
their reporting channel:

    execute(name, arguments)
      ├─ unknown name          -> ToolNotFoundError   (protocol, -32601)
      ├─ schema violation      -> ValidationError     (protocol, 2001)
      └─ tool.execute(args)    bounded by the ``request`` timeout
           ├─ protocol error   -> re-raised for the transport
           └─ anything else    -> ToolResult.error(...)  (isError: true)

Tools are registered once at startup; re-registering a name is an error.

Usage:
    registry = ToolRegistry(validator=Validator(), timeouts=TimeoutHandler())
    register_all_tools(registry, orchestrator)

    result = await registry.execute("cancel-order", {"orderId": "order_001"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..errors import ConfigurationError, InvalidParamsError, ToolNotFoundError
from ..resilience.classifier import ErrorClassifier
from ..resilience.timeout import OperationClass
from ..validation import Validator
from .base import ToolResult

if TYPE_CHECKING:
    from ..resilience.timeout import TimeoutHandler
    from .base import Tool

logger = logging.getLogger(__name__)


class ToolRegistryError(ConfigurationError):
    """Error in tool registry operations."""

    pass


class ToolRegistry:
    """
    Registry of available tools.

    Example:
        registry = ToolRegistry()
        registry.register(tool)

        tool = registry.get("get-orders")
        schemas = registry.to_mcp_schemas()
    """

    def __init__(
        self,
        *,
        validator: Validator | None = None,
        classifier: ErrorClassifier | None = None,
        timeouts: TimeoutHandler | None = None,
    ) -> None:
        self._tools: dict[str, Tool] = {}
        self._validator = validator or Validator()
        self._classifier = classifier or ErrorClassifier()
        self._timeouts = timeouts

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ToolRegistryError: If the name is taken or the tool is malformed
        """
        if tool.name in self._tools:
            raise ToolRegistryError(f"Tool '{tool.name}' already registered")

        self._validate_tool(tool)

        self._tools[tool.name] = tool
        logger.info(f"[tool_registry] Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_required(self, name: str) -> Tool:
        """
        Get a tool by name, raising if not found.

        Raises:
            ToolNotFoundError: If no tool has that name
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name, available=self.list_names())
        return tool

    def list_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def to_mcp_schemas(self) -> list[dict[str, Any]]:
        """Get all tool entries in tools/list format."""
        return [tool.to_mcp_schema() for tool in self._tools.values()]

    # ==================== Execution ====================

    async def execute(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """
        Validate and run a tool.

        Returns:
            The tool's result, or an error-shaped result for a
            tool-execution failure

        Raises:
            ProtocolError: Unknown tool, invalid arguments, or a protocol
                error raised while executing
        """
        tool = self.get_required(name)

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError(
                f"Arguments for tool {name} must be an object",
                {"tool": name},
            )

        self._validator.validate(arguments, tool.input_schema)

        try:
            if self._timeouts is not None:
                result = await self._timeouts.with_timeout(
                    lambda: tool.execute(arguments), OperationClass.REQUEST
                )
            else:
                result = await tool.execute(arguments)
        except Exception as e:
            if self._classifier.is_protocol_error(e):
                raise
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error(f"[tool_registry] Tool {name} failed: {message}")
            return ToolResult.error(message, structured=self._classifier.describe(e))

        if result.is_error:
            logger.warning(f"[tool_registry] Tool {name} returned an error result: {result.text}")
        return result

    def _validate_tool(self, tool: Tool) -> None:
        """
        Validate tool has required properties.

        Raises:
            ToolRegistryError: If tool is invalid
        """
        if not tool.name or not isinstance(tool.name, str):
            raise ToolRegistryError(f"Tool must have a valid name: {tool}")

        if not tool.description or not isinstance(tool.description, str):
            raise ToolRegistryError(f"Tool '{tool.name}' must have a description")

        schema = tool.input_schema
        if not isinstance(schema, dict):
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must be a dict")

        if schema.get("type") != "object":
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have type: 'object'")

        if "properties" not in schema:
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have 'properties'")

        # Compile now so a broken schema fails at startup, not on first call
        try:
            self._validator.compile(schema)
        except ConfigurationError as e:
            raise ToolRegistryError(f"Tool '{tool.name}' has an invalid input_schema: {e.message}") from e

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={list(self._tools.keys())}>"


__all__ = [
    "ToolRegistry",
    "ToolRegistryError",
]
