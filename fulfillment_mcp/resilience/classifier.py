"""
Error Classification.

Single source of truth for two questions asked about every failure:

1. Is it a protocol error (the caller's request was invalid) or a
   tool-execution error (something failed while serving a valid request)?
2. Is it worth retrying?

Both the retry executor and the ToolRegistry's response shaping consult the
same ErrorClassifier, so the two can never disagree.

Precedence for retryability:
    1. An explicit ``retryable`` flag on the error (True/False)
    2. A known-transient error code (ECONNRESET, ECONNREFUSED, EPIPE, ...)
    3. A known-transient Python exception type (ConnectionError, timeouts)
"""

from __future__ import annotations

import asyncio
import errno
import logging
from dataclasses import dataclass
from typing import Any

from ..errors import (
    AdapterError,
    ErrorCategory,
    ErrorCode,
    ErrorKind,
    FulfillmentError,
)

logger = logging.getLogger(__name__)


TRANSIENT_ERROR_CODES = frozenset(
    {
        "ECONNRESET",
        "ECONNREFUSED",
        "ECONNABORTED",
        "EPIPE",
        "ETIMEDOUT",
        "ENOTFOUND",
        "EAI_AGAIN",
        "EHOSTUNREACH",
        "ENETUNREACH",
        # Adapter-level codes for the same conditions
        "CONNECTION_FAILED",
        "BACKEND_UNAVAILABLE",
        "SERVICE_UNAVAILABLE",
        "RATE_LIMITED",
        "TIMEOUT",
    }
)

TRANSIENT_ERRNOS = frozenset(
    {
        errno.ECONNRESET,
        errno.ECONNREFUSED,
        errno.ECONNABORTED,
        errno.EPIPE,
        errno.ETIMEDOUT,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
    }
)


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of classifying one error."""

    kind: ErrorKind
    category: ErrorCategory
    retryable: bool
    code: int

    @property
    def is_protocol_error(self) -> bool:
        return self.kind == ErrorKind.PROTOCOL


class ErrorClassifier:
    """
    Classifies failures for retry and response-shaping decisions.

    Example:
        classifier = ErrorClassifier()
        if classifier.is_protocol_error(e):
            raise
        if classifier.is_retryable(e):
            ...
    """

    def __init__(self, transient_codes: frozenset[str] = TRANSIENT_ERROR_CODES):
        self.transient_codes = transient_codes

    # ==================== Channel ====================

    def is_protocol_error(self, error: BaseException) -> bool:
        """Protocol errors are only ever our own typed errors."""
        if isinstance(error, FulfillmentError):
            return error.kind == ErrorKind.PROTOCOL
        return False

    # ==================== Retryability ====================

    def is_retryable(self, error: BaseException) -> bool:
        flag = getattr(error, "retryable", None)
        if isinstance(flag, bool):
            return flag

        code = self._error_code(error)
        if code is not None and code in self.transient_codes:
            return True

        if isinstance(error, OSError) and error.errno in TRANSIENT_ERRNOS:
            return True

        return isinstance(error, (ConnectionError, asyncio.TimeoutError, TimeoutError))

    # ==================== Category ====================

    def categorize(self, error: BaseException) -> ErrorCategory:
        if isinstance(error, AdapterError) and error.category == ErrorCategory.ADAPTER:
            return self._categorize_adapter_code(error.error_code, error)
        if isinstance(error, FulfillmentError):
            return error.category
        if self.is_retryable(error):
            return ErrorCategory.TRANSIENT
        # Argument handling inside an adapter rejected the input
        if isinstance(error, (ValueError, TypeError)):
            return ErrorCategory.INVALID_INPUT
        return ErrorCategory.INTERNAL

    def classify(self, error: BaseException) -> Classification:
        category = self.categorize(error)
        if isinstance(error, FulfillmentError):
            kind = error.kind
            code = error.code
        else:
            kind = ErrorKind.TOOL_EXECUTION
            code = int(ErrorCode.INTERNAL_ERROR)
        return Classification(
            kind=kind,
            category=category,
            retryable=self.is_retryable(error),
            code=code,
        )

    def counts_against_backend(self, error: BaseException) -> bool:
        """
        Whether a failure indicates an unhealthy backend.

        Business outcomes (not found, state conflicts, capacity) mean the
        backend answered correctly and must not trip a circuit breaker.
        Neither may rejected input, which is the caller's fault.
        """
        return self.categorize(error) in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.ADAPTER,
            ErrorCategory.INTERNAL,
        )

    def describe(self, error: BaseException) -> dict[str, Any]:
        """Structured payload for an error-shaped tool result."""
        classification = self.classify(error)
        payload: dict[str, Any] = {
            "code": classification.code,
            "category": classification.category.value,
            "retryable": classification.retryable,
        }
        if isinstance(error, AdapterError):
            payload["errorCode"] = error.error_code
        if isinstance(error, FulfillmentError) and error.details:
            payload["details"] = error.details
        return payload

    # ==================== Internals ====================

    def _error_code(self, error: BaseException) -> str | None:
        code = getattr(error, "error_code", None)
        if isinstance(code, str):
            return code
        if isinstance(error, OSError) and error.errno is not None:
            return errno.errorcode.get(error.errno)
        code = getattr(error, "code", None)
        return code if isinstance(code, str) else None

    def _categorize_adapter_code(self, code: str, error: AdapterError) -> ErrorCategory:
        if code.endswith("_NOT_FOUND"):
            return ErrorCategory.NOT_FOUND
        if code.startswith("INVALID_") and code.endswith("_STATE"):
            return ErrorCategory.STATE_CONFLICT
        if code.startswith("INSUFFICIENT_"):
            return ErrorCategory.CAPACITY
        if code in self.transient_codes or error.retryable:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.ADAPTER


__all__ = [
    "TRANSIENT_ERRNOS",
    "TRANSIENT_ERROR_CODES",
    "Classification",
    "ErrorClassifier",
]
