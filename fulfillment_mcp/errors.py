"""
Error Taxonomy for fulfillment-mcp.

Every failure in the server is one of three kinds:

- PROTOCOL: the caller's request itself was invalid (malformed message,
  unknown tool, schema violation). Raised to the transport boundary and
  answered with a JSON-RPC error object.
- TOOL_EXECUTION: the request was well-formed but the backend or a business
  rule failed. Caught at the ToolRegistry boundary and returned as a normal
  tool result with ``isError: true``.
- CONFIGURATION: the server cannot be assembled (bad adapter locator,
  adapter contract violation, inconsistent settings). Fatal at startup.

The hierarchy is intentionally shallow: every concrete error is a direct
subclass of FulfillmentError (or of one of the two layer bases) and carries
an explicit ``kind``, ``category``, numeric ``code`` and a structured
``details`` payload.

Usage:
    try:
        await orchestrator.cancel_order({"orderId": "ORD-404"})
    except FulfillmentError as e:
        if e.is_protocol_error:
            raise
        return ToolResult.error(e.message, structured=e.to_dict())
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any


class ErrorKind(str, Enum):
    """Which channel an error is reported on."""

    PROTOCOL = "protocol"
    TOOL_EXECUTION = "tool_execution"
    CONFIGURATION = "configuration"


class ErrorCategory(str, Enum):
    """Finer classification used for retry and reporting decisions."""

    PROTOCOL = "protocol"
    NOT_FOUND = "not_found"
    STATE_CONFLICT = "state_conflict"
    CAPACITY = "capacity"
    TRANSIENT = "transient"
    ADAPTER = "adapter"
    CONFIGURATION = "configuration"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


class ErrorCode(IntEnum):
    """Numeric error codes surfaced to callers."""

    # JSON-RPC
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Request validation
    VALIDATION_ERROR = 2001
    MISSING_REQUIRED_FIELD = 2002

    # Transient
    RATE_LIMIT_EXCEEDED = 3001
    TIMEOUT = 3002

    # Backend
    ADAPTER_ERROR = 4001
    BACKEND_UNAVAILABLE = 4002
    NOT_FOUND = 4004
    STATE_CONFLICT = 4009
    INSUFFICIENT_INVENTORY = 4010
    CIRCUIT_OPEN = 4030

    # Server
    NOT_IMPLEMENTED = 5001
    NOT_INITIALIZED = 5002
    CONFIGURATION_ERROR = 5003


class FulfillmentError(Exception):
    """
    Base error for the server.

    Attributes:
        message: Human-readable description
        code: Numeric code (see ErrorCode)
        kind: Reporting channel
        category: Classification used by retry and response shaping
        retryable: Explicit retry flag (None = let the classifier decide)
        details: Structured diagnostic payload
    """

    kind: ErrorKind = ErrorKind.TOOL_EXECUTION
    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        code: int = ErrorCode.INTERNAL_ERROR,
        retryable: bool | None = False,
        details: dict[str, Any] | None = None,
        kind: ErrorKind | None = None,
        category: ErrorCategory | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = int(code)
        self.retryable = retryable
        self.details = details or {}
        if kind is not None:
            self.kind = kind
        if category is not None:
            self.category = category

    @property
    def is_protocol_error(self) -> bool:
        return self.kind == ErrorKind.PROTOCOL

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "kind": self.kind.value,
            "category": self.category.value,
            "retryable": bool(self.retryable),
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code}, message={self.message!r})"


# =============================================================================
# Protocol Errors
# =============================================================================


class ProtocolError(FulfillmentError):
    """The caller's request was invalid. Never retried."""

    kind = ErrorKind.PROTOCOL
    category = ErrorCategory.PROTOCOL

    def __init__(
        self,
        message: str,
        *,
        code: int = ErrorCode.INVALID_REQUEST,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, retryable=False, details=details)

    def to_jsonrpc(self) -> dict[str, Any]:
        """Render as a JSON-RPC error object."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["data"] = self.details
        return error


class MethodNotFoundError(ProtocolError):
    def __init__(self, method: str):
        super().__init__(
            f"Method not found: {method}",
            code=ErrorCode.METHOD_NOT_FOUND,
            details={"method": method},
        )
        self.method = method


class ToolNotFoundError(ProtocolError):
    """Raised when tools/call names a tool that is not registered."""

    def __init__(self, tool_name: str, available: list[str] | None = None):
        details: dict[str, Any] = {"tool": tool_name}
        if available is not None:
            details["available"] = available
        super().__init__(
            f"Unknown tool: {tool_name}",
            code=ErrorCode.METHOD_NOT_FOUND,
            details=details,
        )
        self.tool_name = tool_name


class InvalidParamsError(ProtocolError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code=ErrorCode.INVALID_PARAMS, details=details)


class ValidationError(ProtocolError):
    """Tool arguments failed schema validation."""

    def __init__(self, field: str, reason: str, value: Any = None):
        super().__init__(
            f"Validation failed for field {field}: {reason}",
            code=ErrorCode.VALIDATION_ERROR,
            details={"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason
        self.value = value


# =============================================================================
# Tool-Execution Errors
# =============================================================================


class NotFoundError(FulfillmentError):
    """A lookup by identifier found nothing."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, resource: str, identifier: Any, details: dict[str, Any] | None = None):
        payload = {"resource": resource, "identifier": identifier}
        payload.update(details or {})
        super().__init__(
            f"{resource} not found: {identifier}",
            code=ErrorCode.NOT_FOUND,
            retryable=False,
            details=payload,
        )
        self.resource = resource
        self.identifier = identifier


class StateConflictError(FulfillmentError):
    """The target is in a state that does not allow the operation."""

    category = ErrorCategory.STATE_CONFLICT

    def __init__(self, message: str, current_state: str, operation: str, **extra: Any):
        super().__init__(
            message,
            code=ErrorCode.STATE_CONFLICT,
            retryable=False,
            details={"currentState": current_state, "operation": operation, **extra},
        )
        self.current_state = current_state
        self.operation = operation


class InsufficientInventoryError(FulfillmentError):
    category = ErrorCategory.CAPACITY

    def __init__(self, sku: str, requested: int, available: int):
        super().__init__(
            f"Insufficient inventory for {sku}: requested {requested}, available {available}",
            code=ErrorCode.INSUFFICIENT_INVENTORY,
            retryable=False,
            details={"sku": sku, "requested": requested, "available": available},
        )
        self.sku = sku
        self.requested = requested
        self.available = available


class BackendUnavailableError(FulfillmentError):
    """Connection-level failure talking to the backend. Retryable."""

    category = ErrorCategory.TRANSIENT

    def __init__(
        self,
        message: str = "Backend service unavailable",
        *,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        payload = dict(details or {})
        if retry_after is not None:
            payload["retryAfter"] = retry_after
        super().__init__(
            message,
            code=ErrorCode.BACKEND_UNAVAILABLE,
            retryable=True,
            details=payload,
        )
        self.retry_after = retry_after


class RateLimitExceededError(FulfillmentError):
    category = ErrorCategory.TRANSIENT

    def __init__(self, retry_after: float | None = None):
        message = "Rate limit exceeded"
        if retry_after is not None:
            message += f", retry after {retry_after}s"
        super().__init__(
            message,
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            retryable=True,
            details={"retryAfter": retry_after} if retry_after is not None else {},
        )
        self.retry_after = retry_after


class OperationTimeoutError(FulfillmentError):
    """An operation did not settle within its timeout budget."""

    category = ErrorCategory.TRANSIENT

    def __init__(self, operation_class: str, timeout_ms: int):
        super().__init__(
            f"Operation timed out after {timeout_ms}ms",
            code=ErrorCode.TIMEOUT,
            retryable=True,
            details={"operationClass": operation_class, "timeoutMs": timeout_ms},
        )
        self.operation_class = operation_class
        self.timeout_ms = timeout_ms


class AdapterError(FulfillmentError):
    """
    Error raised by an adapter implementation.

    Adapters report failures with a string ``error_code`` such as
    ``ORDER_NOT_FOUND`` or ``INVALID_ORDER_STATE``; the ErrorClassifier maps
    those codes onto categories. ``retryable`` defaults to None so the
    classifier's transient-code table decides.
    """

    category = ErrorCategory.ADAPTER

    def __init__(
        self,
        message: str,
        error_code: str = "ADAPTER_ERROR",
        details: dict[str, Any] | None = None,
        *,
        retryable: bool | None = None,
    ):
        super().__init__(
            message,
            code=ErrorCode.ADAPTER_ERROR,
            retryable=retryable,
            details=details,
        )
        self.error_code = error_code

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errorCode"] = self.error_code
        return result


class AdapterNotInitializedError(FulfillmentError):
    def __init__(self, message: str = "Adapter not initialized. Call initialize() first."):
        super().__init__(message, code=ErrorCode.NOT_INITIALIZED, retryable=False)


class OperationNotSupportedError(FulfillmentError):
    def __init__(self, operation: str):
        super().__init__(
            f"Operation not implemented: {operation}",
            code=ErrorCode.NOT_IMPLEMENTED,
            retryable=False,
            details={"operation": operation},
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(FulfillmentError):
    kind = ErrorKind.CONFIGURATION
    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.CONFIGURATION_ERROR,
            retryable=False,
            details=details,
        )


class AdapterConfigurationError(AdapterError):
    """
    The adapter could not be located, loaded or validated.

    ``error_code`` is one of MISSING_ADAPTER_NAME, ADAPTER_NOT_FOUND,
    MISSING_PACKAGE_NAME, EXPORT_NOT_FOUND, INVALID_CONSTRUCTOR,
    PACKAGE_LOAD_ERROR, MISSING_ADAPTER_PATH, ADAPTER_FILE_NOT_FOUND,
    INVALID_ADAPTER_PATH, LOCAL_LOAD_ERROR, UNKNOWN_ADAPTER_TYPE or
    INVALID_ADAPTER.
    """

    kind = ErrorKind.CONFIGURATION
    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, error_code: str, details: dict[str, Any] | None = None):
        super().__init__(message, error_code, details, retryable=False)
        self.code = int(ErrorCode.CONFIGURATION_ERROR)


__all__ = [
    "AdapterConfigurationError",
    "AdapterError",
    "AdapterNotInitializedError",
    "BackendUnavailableError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorCode",
    "ErrorKind",
    "FulfillmentError",
    "InsufficientInventoryError",
    "InvalidParamsError",
    "MethodNotFoundError",
    "NotFoundError",
    "OperationNotSupportedError",
    "OperationTimeoutError",
    "ProtocolError",
    "RateLimitExceededError",
    "StateConflictError",
    "ToolNotFoundError",
    "ValidationError",
]
