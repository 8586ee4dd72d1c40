"""
Retry with backoff for transient backend failures.

Provides:
- BackoffStrategy: delay calculation between attempts
- RetryPolicy: how many attempts, which failures qualify, how long to wait
- execute / with_retry: run one operation under a policy
- execute_all / execute_all_settled: run a batch of independent operations

Only retryable failures are retried. Retryability comes from the shared
ErrorClassifier (explicit flag, known-transient code, transient exception
type) or from a caller-supplied predicate. A non-retryable failure is
surfaced after the first attempt, unchanged.

Attempts within one operation are strictly sequential; delay before the
retry that follows attempt ``n`` is ``initial_delay * multiplier ** (n - 1)``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from .classifier import ErrorClassifier

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Backoff Strategies
# =============================================================================


class BackoffStrategy(ABC):
    """Calculates how long to wait before the next attempt."""

    @abstractmethod
    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay before next retry attempt.

        Args:
            attempt: Number of the attempt that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        ...


@dataclass
class NoBackoff(BackoffStrategy):
    """No delay between retries. Useful in tests."""

    def get_delay(self, attempt: int) -> float:
        return 0.0


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """
    Exponentially increasing delay between retries.

    delay = base * (multiplier ^ (attempt - 1)), capped at max_delay

    Example:
        backoff = ExponentialBackoff(base=1.0, multiplier=2.0, max_delay=10.0)
        # Attempt 1: 1s, Attempt 2: 2s, Attempt 3: 4s, Attempt 4: 8s, ...
    """

    base: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0
    jitter: bool = False
    jitter_factor: float = 0.25  # +/- 25%

    def get_delay(self, attempt: int) -> float:
        delay = self.base * (self.multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass
class RetryPolicy:
    """
    Configures retry behavior for backend calls.

    Example:
        policy = RetryPolicy.exponential(max_attempts=3, initial_delay=0.5)

        policy = RetryPolicy(
            max_attempts=5,
            backoff=NoBackoff(),
            is_retryable=lambda e: isinstance(e, MyFlakyError),
        )
    """

    max_attempts: int = 3  # Total tries, including the first
    backoff: BackoffStrategy = field(default_factory=ExponentialBackoff)
    is_retryable: Callable[[BaseException], bool] | None = None
    classifier: ErrorClassifier = field(default_factory=ErrorClassifier)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def exponential(
        cls,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        backoff_multiplier: float = 2.0,
        max_delay: float = 10.0,
        is_retryable: Callable[[BaseException], bool] | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> RetryPolicy:
        return cls(
            max_attempts=max_attempts,
            backoff=ExponentialBackoff(
                base=initial_delay,
                multiplier=backoff_multiplier,
                max_delay=max_delay,
            ),
            is_retryable=is_retryable,
            classifier=classifier or ErrorClassifier(),
        )

    def retryable(self, error: BaseException) -> bool:
        if self.classifier.is_retryable(error):
            return True
        return bool(self.is_retryable and self.is_retryable(error))

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """
        Determine if another attempt should be made.

        Args:
            attempt: Number of the attempt that just failed (1-indexed)
            error: Exception raised by that attempt
        """
        if attempt >= self.max_attempts:
            return False
        return self.retryable(error)

    def get_delay(self, attempt: int) -> float:
        return self.backoff.get_delay(attempt)


NO_RETRY = RetryPolicy(max_attempts=1, backoff=NoBackoff())


# =============================================================================
# Retry Executor
# =============================================================================


@dataclass
class RetryResult:
    """Result of a retry-wrapped operation."""

    success: bool
    result: Any = None
    attempts: int = 0
    total_delay: float = 0.0
    errors: list[BaseException] = field(default_factory=list)

    @property
    def final_error(self) -> BaseException | None:
        """Get the last error encountered."""
        return self.errors[-1] if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        error = self.final_error
        return {
            "success": self.success,
            "result": self.result if self.success else None,
            "attempts": self.attempts,
            "error": str(error) if error is not None and not self.success else None,
        }


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str = "operation",
) -> RetryResult:
    """
    Execute an async operation with retry logic, never raising.

    Args:
        operation: Zero-argument async callable; called once per attempt
        policy: Retry policy to apply
        operation_name: Name for logging

    Returns:
        RetryResult with success status and result/errors
    """
    errors: list[BaseException] = []
    total_delay = 0.0
    attempt = 0

    while True:
        attempt += 1

        try:
            result = await operation()
            return RetryResult(
                success=True,
                result=result,
                attempts=attempt,
                total_delay=total_delay,
                errors=errors,
            )

        except Exception as e:
            errors.append(e)

            if policy.should_retry(attempt, e):
                delay = policy.get_delay(attempt)
                total_delay += delay
                logger.warning(
                    f"[retry] {operation_name}: attempt {attempt}/{policy.max_attempts} "
                    f"failed with {type(e).__name__}: {e}, retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
            else:
                if attempt > 1:
                    logger.error(
                        f"[retry] {operation_name}: failed after {attempt} attempts, last error: {e}"
                    )
                return RetryResult(
                    success=False,
                    result=None,
                    attempts=attempt,
                    total_delay=total_delay,
                    errors=errors,
                )


async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Execute an async operation with retries, raising the last error on failure.

    Example:
        orders = await execute(
            lambda: adapter.get_orders(params),
            RetryPolicy.exponential(max_attempts=3, initial_delay=0.5),
            operation_name="get_orders",
        )
    """
    outcome = await with_retry(operation, policy or RetryPolicy(), operation_name)
    if outcome.success:
        return outcome.result
    error = outcome.final_error
    if error is None:
        raise RuntimeError(f"{operation_name} failed without an error")
    raise error


async def execute_all(
    operations: Sequence[Callable[[], Awaitable[T]]],
    policy: RetryPolicy | None = None,
    operation_name: str = "batch",
) -> list[T]:
    """
    Run independent operations concurrently, each with retries.

    Fails fast: the first operation to fail for good raises, and the
    remaining results are discarded.
    """
    return list(
        await asyncio.gather(
            *(
                execute(op, policy, f"{operation_name}[{index}]")
                for index, op in enumerate(operations)
            )
        )
    )


async def execute_all_settled(
    operations: Sequence[Callable[[], Awaitable[T]]],
    policy: RetryPolicy | None = None,
    operation_name: str = "batch",
) -> list[RetryResult]:
    """Run independent operations concurrently, returning one outcome per operation."""
    policy = policy or RetryPolicy()
    return list(
        await asyncio.gather(
            *(
                with_retry(op, policy, f"{operation_name}[{index}]")
                for index, op in enumerate(operations)
            )
        )
    )


__all__ = [
    "NO_RETRY",
    "BackoffStrategy",
    "ExponentialBackoff",
    "NoBackoff",
    "RetryPolicy",
    "RetryResult",
    "execute",
    "execute_all",
    "execute_all_settled",
    "with_retry",
]
