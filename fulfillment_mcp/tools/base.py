"""
Tool Base Classes (MCP-Aligned).

This module defines the core abstractions for tools:
- Tool: Base class for all tools (the ToolDescriptor)
- OperationTool: A tool that delegates to one orchestrator operation
- ToolResult: Result from tool execution
- ToolAnnotations: Behavioral hints for tools
- ContentBlock: Content blocks in tool results

MCP Alignment:
    - Tool has name, description, inputSchema
    - ToolResult has content blocks and an isError flag
    - Annotations are advisory hints only

Usage:
    tool = OperationTool(
        name="cancel-order",
        description="Cancel an order",
        input_schema=CANCEL_ORDER_SCHEMA,
        handler=orchestrator.cancel_order,
    )
    result = await tool.execute({"orderId": "order_001"})
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from ..adapters.base import OperationOutcome

ToolHandler = Callable[[dict[str, Any]], Awaitable["OperationOutcome"]]


class ContentType(Enum):
    """Type of content in a tool result (MCP-aligned)."""

    TEXT = "text"


@dataclass(frozen=True, slots=True)
class ContentBlock:
    """
    Content block in tool result (MCP-aligned).

    Example:
        ContentBlock.from_text("Order cancelled")
    """

    type: ContentType
    text_content: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(
        cls,
        content: str,
        *,
        annotations: dict[str, Any] | None = None,
    ) -> ContentBlock:
        """Create a text content block."""
        return cls(
            type=ContentType.TEXT,
            text_content=content,
            annotations=annotations or {},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value}

        if self.text_content is not None:
            result["text"] = self.text_content
        if self.annotations:
            result["annotations"] = self.annotations

        return result


@dataclass(frozen=True, slots=True)
class ToolAnnotations:
    """
    Behavioral hints for tools (MCP-aligned).

    These are ADVISORY only and must not be relied upon for security
    decisions.

    Example:
        # Query tool
        ToolAnnotations(title="Get Orders", read_only_hint=True)

        # Cancelling is destructive but repeatable
        ToolAnnotations(title="Cancel Order", destructive_hint=True, idempotent_hint=True)
    """

    title: str | None = None
    read_only_hint: bool = False
    destructive_hint: bool = True
    idempotent_hint: bool = False
    open_world_hint: bool = True  # Every tool reaches a backend system

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}

        if self.title is not None:
            result["title"] = self.title
        if self.read_only_hint:
            result["readOnlyHint"] = True
        if not self.destructive_hint:
            result["destructiveHint"] = False
        if self.idempotent_hint:
            result["idempotentHint"] = True
        if self.open_world_hint:
            result["openWorldHint"] = True

        return result


@dataclass(frozen=True, slots=True)
class ToolResult:
    """
    Result from tool execution (MCP-aligned).

    Tool-execution failures are reported IN the result (``is_error``), not
    as exceptions, so callers inspect the payload rather than catching.

    Example:
        ToolResult.success("Order cancelled", structured={"order": {...}})
        ToolResult.error("Order not found: order_404")
    """

    content: tuple[ContentBlock, ...]
    is_error: bool = False
    structured_content: dict[str, Any] | None = None

    @classmethod
    def success(
        cls,
        text: str,
        *,
        structured: dict[str, Any] | None = None,
    ) -> ToolResult:
        return cls(
            content=(ContentBlock.from_text(text),),
            is_error=False,
            structured_content=structured,
        )

    @classmethod
    def error(
        cls,
        message: str,
        *,
        structured: dict[str, Any] | None = None,
    ) -> ToolResult:
        """
        Create an error result.

        Args:
            message: Error description (rendered as "Error: <message>")
            structured: Optional structured error data

        Returns:
            ToolResult with is_error=True
        """
        return cls(
            content=(ContentBlock.from_text(f"Error: {message}"),),
            is_error=True,
            structured_content=structured,
        )

    @classmethod
    def from_outcome(cls, outcome: OperationOutcome) -> ToolResult:
        """
        Render an OperationOutcome.

        Success becomes pretty-printed JSON text plus the same payload as
        structured content; a soft failure becomes an error result.
        """
        if not outcome.success:
            structured: dict[str, Any] = {"errorCode": outcome.error_code}
            if outcome.details:
                structured["details"] = outcome.details
            return cls.error(outcome.error or "Operation failed", structured=structured)

        payload = outcome.to_dict()
        return cls.success(json.dumps(payload, indent=2, default=str), structured=payload)

    @property
    def text(self) -> str:
        """Get the primary text content (convenience accessor)."""
        for block in self.content:
            if block.type == ContentType.TEXT and block.text_content:
                return block.text_content
        return ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "content": [block.to_dict() for block in self.content],
        }

        if self.is_error:
            result["isError"] = True
        if self.structured_content is not None:
            result["structuredContent"] = self.structured_content

        return result


class Tool(ABC):
    """
    Base class for all tools (MCP-aligned).

    Contract:
        - name: Unique identifier (kebab-case, e.g. "cancel-order")
        - description: What the tool does and when to use it
        - input_schema: JSON Schema for arguments
        - execute: Async method that performs the action

    Tools receive arguments that the ToolRegistry has already validated
    against ``input_schema``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema object (``type: object`` with ``properties``)."""
        ...

    @property
    def annotations(self) -> ToolAnnotations:
        return ToolAnnotations()

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """
        Execute the tool with validated arguments.

        Returns:
            ToolResult with execution outcome

        Raises:
            FulfillmentError: Classified by the ToolRegistry into a
                protocol error or an error-shaped result
        """
        ...

    def to_mcp_schema(self) -> dict[str, Any]:
        """Tool entry as listed by tools/list."""
        schema: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

        annotations = self.annotations.to_dict()
        if annotations:
            schema["annotations"] = annotations

        return schema

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"


class OperationTool(Tool):
    """
    Tool bound to one orchestrator operation.

    The handler receives the validated arguments and returns an
    OperationOutcome, which is rendered with ToolResult.from_outcome().
    """

    def __init__(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any],
        handler: ToolHandler,
        annotations: ToolAnnotations | None = None,
    ):
        self._name = name
        self._description = description
        self._input_schema = input_schema
        self._handler = handler
        self._annotations = annotations or ToolAnnotations()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    @property
    def annotations(self) -> ToolAnnotations:
        return self._annotations

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        outcome = await self._handler(arguments)
        return ToolResult.from_outcome(outcome)


__all__ = [
    "ContentBlock",
    "ContentType",
    "OperationTool",
    "Tool",
    "ToolAnnotations",
    "ToolHandler",
    "ToolResult",
]
