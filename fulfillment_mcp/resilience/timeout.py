"""
Timeout enforcement per operation class.

Two operation classes are configured:
- request: the whole tools/call, end to end
- adapter: a single call into the backend adapter

The adapter budget must be strictly smaller than the request budget so a
hung backend call always surfaces before the surrounding request deadline.

Semantics:
    The operation races a timer. If the timer wins, the operation is
    abandoned, NOT cancelled: it keeps running in the background and any
    side effects it performs still happen. Its eventual result or exception
    is consumed and discarded.

Usage:
    timeouts = TimeoutHandler(TimeoutConfig(request_ms=30000, adapter_ms=25000))
    order = await timeouts.with_timeout(adapter.get_orders(params), "adapter")
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from ..errors import ConfigurationError, OperationTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REQUEST_TIMEOUT_MS = 30000
DEFAULT_ADAPTER_TIMEOUT_MS = 25000


class OperationClass(str, Enum):
    REQUEST = "request"
    ADAPTER = "adapter"


@dataclass(frozen=True)
class TimeoutConfig:
    """Timeout budget per operation class, in milliseconds."""

    request_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    adapter_ms: int = DEFAULT_ADAPTER_TIMEOUT_MS

    def __post_init__(self) -> None:
        if self.request_ms <= 0 or self.adapter_ms <= 0:
            raise ConfigurationError(
                "Timeouts must be positive",
                details={"request": self.request_ms, "adapter": self.adapter_ms},
            )
        if self.adapter_ms >= self.request_ms:
            raise ConfigurationError(
                f"Adapter timeout ({self.adapter_ms}ms) must be less than "
                f"request timeout ({self.request_ms}ms)",
                details={"request": self.request_ms, "adapter": self.adapter_ms},
            )

    def get(self, operation_class: OperationClass | str) -> int:
        operation_class = OperationClass(operation_class)
        if operation_class == OperationClass.REQUEST:
            return self.request_ms
        return self.adapter_ms


def _discard_result(task: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned operation so it is not reported as unhandled."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"[timeout] Abandoned operation finished with {type(error).__name__}: {error}")


class TimeoutHandler:
    """Bounds asynchronous operations by their class's timeout budget."""

    def __init__(self, config: TimeoutConfig | None = None):
        self.config = config or TimeoutConfig()

    def get_timeout(self, operation_class: OperationClass | str) -> int:
        return self.config.get(operation_class)

    async def with_timeout(
        self,
        operation: Awaitable[T] | Callable[[], Awaitable[T]],
        operation_class: OperationClass | str = OperationClass.ADAPTER,
        override_ms: int | None = None,
    ) -> T:
        """
        Await an operation, failing if it does not settle within the budget.

        Args:
            operation: Awaitable, or a zero-argument callable returning one
            operation_class: Which budget to apply ("request" or "adapter")
            override_ms: Explicit budget overriding the configured one

        Raises:
            OperationTimeoutError: If the timer wins the race
        """
        timeout_ms = override_ms if override_ms is not None else self.get_timeout(operation_class)
        class_name = OperationClass(operation_class).value

        if callable(operation) and not inspect.isawaitable(operation):
            operation = operation()
        task = asyncio.ensure_future(operation)

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.add_done_callback(_discard_result)
            raise
        if task in done:
            return task.result()

        task.add_done_callback(_discard_result)
        logger.warning(f"[timeout] {class_name} operation abandoned after {timeout_ms}ms")
        raise OperationTimeoutError(class_name, timeout_ms)


async def with_timeout(
    operation: Awaitable[T] | Callable[[], Awaitable[T]],
    timeout_ms: int,
    operation_class: OperationClass | str = OperationClass.ADAPTER,
) -> Any:
    """Apply an explicit timeout without a configured handler."""
    handler = TimeoutHandler()
    return await handler.with_timeout(operation, operation_class, override_ms=timeout_ms)


__all__ = [
    "DEFAULT_ADAPTER_TIMEOUT_MS",
    "DEFAULT_REQUEST_TIMEOUT_MS",
    "OperationClass",
    "TimeoutConfig",
    "TimeoutHandler",
    "with_timeout",
]
