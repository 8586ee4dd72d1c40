"""
Resilience utilities: timeouts, retries, circuit breaking and error classification.

These wrap any asynchronous operation; the ServiceOrchestrator composes
them around every adapter call:

    breaker.call(lambda: timeouts.with_timeout(adapter.op(params), "adapter"))
        inside retry.execute(..., policy)
"""

from .circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from .classifier import TRANSIENT_ERROR_CODES, Classification, ErrorClassifier
from .retry import (
    NO_RETRY,
    BackoffStrategy,
    ExponentialBackoff,
    NoBackoff,
    RetryPolicy,
    RetryResult,
    execute,
    execute_all,
    execute_all_settled,
    with_retry,
)
from .timeout import OperationClass, TimeoutConfig, TimeoutHandler, with_timeout

__all__ = [
    # Classification
    "TRANSIENT_ERROR_CODES",
    "Classification",
    "ErrorClassifier",
    # Retry
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
    # Timeout
    "OperationClass",
    "TimeoutConfig",
    "TimeoutHandler",
    "with_timeout",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
]
