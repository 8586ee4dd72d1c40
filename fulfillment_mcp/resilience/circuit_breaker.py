"""
Circuit breaker for the active backend adapter.

States:
- CLOSED: normal operation, calls pass through
- OPEN: too many recent failures, calls fail fast with CircuitOpenError
- HALF_OPEN: reset timeout elapsed, a limited number of probe calls pass

A breaker opens once ``failure_threshold`` failures have been recorded
within ``window`` seconds. Only failures that indicate an unhealthy backend
count (see ErrorClassifier.counts_against_backend): a "not found" answer
is a healthy backend answering correctly.

Example:
    breaker = CircuitBreaker(name="adapter", failure_threshold=5, reset_timeout=60.0)
    result = await breaker.call(lambda: adapter.get_orders(params))
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from ..errors import ConfigurationError, ErrorCategory, ErrorCode, FulfillmentError
from .classifier import ErrorClassifier

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(FulfillmentError):
    """Raised when a call is rejected because the circuit is open."""

    category = ErrorCategory.TRANSIENT

    def __init__(self, circuit_name: str, reset_after: float):
        super().__init__(
            f"Circuit '{circuit_name}' is open, will attempt reset in {reset_after:.1f}s",
            code=ErrorCode.CIRCUIT_OPEN,
            retryable=False,
            details={"circuit": circuit_name, "retryAfter": round(reset_after, 3)},
        )
        self.circuit_name = circuit_name
        self.reset_after = reset_after


@dataclass
class CircuitBreaker:
    """
    Failure-threshold gate in front of a protected resource.

    Attributes:
        name: Circuit name for logs and errors
        failure_threshold: Failures within ``window`` that open the circuit
        reset_timeout: Seconds the circuit stays open before probing
        window: Seconds a recorded failure stays relevant
        half_open_max_calls: Probe calls allowed while half-open
    """

    name: str = "adapter"
    failure_threshold: int = 5
    reset_timeout: float = 60.0
    window: float = 60.0
    half_open_max_calls: int = 1
    classifier: ErrorClassifier = field(default_factory=ErrorClassifier)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failures: deque = field(default_factory=deque, init=False)
    _opened_at: float | None = field(default=None, init=False)
    _half_open_calls: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold <= 0:
            raise ConfigurationError("Circuit breaker failure_threshold must be positive")
        if self.reset_timeout <= 0:
            raise ConfigurationError("Circuit breaker reset_timeout must be positive")

    @property
    def state(self) -> CircuitState:
        """Current state (may transition OPEN -> HALF_OPEN on read)."""
        if self._state == CircuitState.OPEN and self._reset_elapsed():
            logger.info(f"[circuit_breaker] '{self.name}': OPEN -> HALF_OPEN")
            self._state = CircuitState.HALF_OPEN
            self._half_open_calls = 0
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def _reset_elapsed(self) -> bool:
        if self._opened_at is None:
            return False
        return time.monotonic() - self._opened_at >= self.reset_timeout

    def _remaining(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.reset_timeout - (time.monotonic() - self._opened_at))

    def _prune(self, now: float) -> None:
        while self._failures and now - self._failures[0] > self.window:
            self._failures.popleft()

    def _open(self) -> None:
        logger.warning(
            f"[circuit_breaker] '{self.name}': {self._state.value} -> OPEN "
            f"(failures={len(self._failures)})"
        )
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info(f"[circuit_breaker] '{self.name}': HALF_OPEN -> CLOSED")
            self._state = CircuitState.CLOSED
            self._failures.clear()
            self._opened_at = None
            self._half_open_calls = 0

    def record_failure(self) -> None:
        now = time.monotonic()
        self._failures.append(now)
        self._prune(now)

        if self._state == CircuitState.HALF_OPEN:
            self._open()
        elif self._state == CircuitState.CLOSED and len(self._failures) >= self.failure_threshold:
            self._open()

    def _before_call(self) -> None:
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitOpenError(self.name, self._remaining())
        if state == CircuitState.HALF_OPEN:
            self._half_open_calls += 1
            if self._half_open_calls > self.half_open_max_calls:
                raise CircuitOpenError(self.name, self.reset_timeout)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an operation through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open
            Exception: Any exception from the operation
        """
        self._before_call()
        try:
            result = await operation()
        except Exception as e:
            if self.classifier.counts_against_backend(e):
                self.record_failure()
            else:
                self.record_success()
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures.clear()
        self._opened_at = None
        self._half_open_calls = 0

    def get_stats(self) -> dict[str, Any]:
        self._prune(time.monotonic())
        return {
            "name": self.name,
            "state": self.state.value,
            "recent_failures": len(self._failures),
            "failure_threshold": self.failure_threshold,
            "reset_timeout": self.reset_timeout,
            "reset_after": self._remaining() if self._state == CircuitState.OPEN else None,
        }


__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
]
