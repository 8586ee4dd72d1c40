"""
Service Orchestrator.

Facade over the current adapter. Every domain operation goes through the
same path:

    guard (manager READY?)
      -> start timer
      -> retry( breaker( timeout[adapter]( adapter.<operation>(params) ) ) )
      -> record duration + success/failure in the HealthMonitor
      -> return the OperationOutcome, or re-raise

The orchestrator never chooses an adapter itself; that belongs to the
AdapterManager.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .adapters.base import OperationOutcome
from .errors import AdapterError, AdapterNotInitializedError
from .health import HealthMonitor
from .resilience.classifier import ErrorClassifier
from .resilience.retry import NO_RETRY, execute
from .resilience.timeout import OperationClass, TimeoutHandler

if TYPE_CHECKING:
    from .adapters.base import FulfillmentAdapter
    from .adapters.config import AdapterConfig
    from .manager import AdapterManager
    from .resilience.circuit_breaker import CircuitBreaker
    from .resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

COMPONENT = "ServiceOrchestrator"


def coerce_outcome(result: Any, operation: str) -> OperationOutcome:
    """
    Normalize what an adapter returned into an OperationOutcome.

    Duck-typed adapters may return the plain ``{"success": ..., ...}`` shape.
    """
    if isinstance(result, OperationOutcome):
        return result
    if isinstance(result, Mapping):
        data = dict(result)
        if data.pop("success", True):
            return OperationOutcome.ok(**data)
        error = data.get("error")
        return OperationOutcome.failure(
            str(getattr(error, "message", error) or f"{operation} failed"),
            data.get("errorCode") or getattr(error, "error_code", None) or "OPERATION_FAILED",
            data.get("details"),
        )
    raise AdapterError(
        f"Adapter returned unsupported result for {operation}: {type(result).__name__}",
        "INVALID_RESULT",
        {"operation": operation},
        retryable=False,
    )


class ServiceOrchestrator:
    """
    Cross-cutting facade: guard, time, count, delegate.

    Example:
        orchestrator = ServiceOrchestrator(manager, timeouts=TimeoutHandler())
        await orchestrator.initialize({"type": "builtin", "name": "mock"})
        outcome = await orchestrator.get_orders({"ids": ["order_001"]})
    """

    def __init__(
        self,
        manager: AdapterManager,
        *,
        timeouts: TimeoutHandler | None = None,
        retry_policy: RetryPolicy | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        monitor: HealthMonitor | None = None,
        classifier: ErrorClassifier | None = None,
    ):
        self.manager = manager
        self.timeouts = timeouts or TimeoutHandler()
        self.retry_policy = retry_policy or NO_RETRY
        self.circuit_breaker = circuit_breaker
        self.monitor = monitor or HealthMonitor()
        self.classifier = classifier or ErrorClassifier()

    # ==================== Lifecycle ====================

    async def initialize(self, config: AdapterConfig | dict[str, Any]) -> None:
        await self.manager.initialize(config)
        logger.info(f"[orchestrator] Initialized with {type(self.manager.get_adapter()).__name__}")

    @property
    def is_initialized(self) -> bool:
        return self.manager.is_ready

    def _require_adapter(self) -> FulfillmentAdapter:
        if not self.manager.is_ready:
            raise AdapterNotInitializedError("Service orchestrator not initialized. Call initialize() first.")
        return self.manager.get_adapter()

    async def update_adapter_config(self, config: AdapterConfig | dict[str, Any]) -> None:
        await self.manager.update_config(config)
        if self.circuit_breaker is not None:
            self.circuit_breaker.reset()

    async def cleanup(self) -> None:
        await self.manager.cleanup()
        logger.info("[orchestrator] Cleaned up")

    # ==================== Execution ====================

    async def _run(self, operation: str, params: dict[str, Any]) -> OperationOutcome:
        adapter = self._require_adapter()
        method = getattr(adapter, operation)

        async def bounded() -> Any:
            return await self.timeouts.with_timeout(lambda: method(params), OperationClass.ADAPTER)

        async def attempt() -> Any:
            if self.circuit_breaker is not None:
                return await self.circuit_breaker.call(bounded)
            return await bounded()

        started = time.perf_counter()
        try:
            outcome = coerce_outcome(await execute(attempt, self.retry_policy, operation), operation)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            self.monitor.record_operation(
                COMPONENT, operation, duration_ms, False, str(e), self.classifier.counts_against_backend(e)
            )
            logger.error(f"[orchestrator] {operation} failed after {duration_ms:.1f}ms: {e}")
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        backend_failure = None
        if not outcome.success:
            backend_failure = self.classifier.counts_against_backend(
                AdapterError(outcome.error or operation, outcome.error_code or "OPERATION_FAILED")
            )
        self.monitor.record_operation(
            COMPONENT, operation, duration_ms, outcome.success, outcome.error, backend_failure
        )
        logger.debug(f"[orchestrator] {operation} completed in {duration_ms:.1f}ms")
        return outcome

    # ==================== Orders ====================

    async def create_sales_order(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("create_sales_order", params)

    async def cancel_order(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("cancel_order", params)

    async def update_order(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("update_order", params)

    async def fulfill_order(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("fulfill_order", params)

    async def hold_order(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("hold_order", params)

    async def split_order(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("split_order", params)

    async def reserve_inventory(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("reserve_inventory", params)

    # ==================== Queries ====================

    async def get_orders(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("get_orders", params)

    async def get_customers(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("get_customers", params)

    async def get_products(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("get_products", params)

    async def get_product_variants(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("get_product_variants", params)

    async def get_inventory(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("get_inventory", params)

    async def get_fulfillments(self, params: dict[str, Any]) -> OperationOutcome:
        return await self._run("get_fulfillments", params)

    # ==================== Observability ====================

    async def check_health(self) -> dict[str, Any]:
        """Fresh adapter check plus the aggregated system view."""
        adapter_report = await self.manager.check_health()
        system = self.monitor.get_system_health()
        result: dict[str, Any] = {
            "status": system.status.value,
            "adapter": adapter_report.to_dict(),
            "system": system.to_dict(),
            "manager": self.manager.get_info(),
        }
        if self.circuit_breaker is not None:
            result["circuitBreaker"] = self.circuit_breaker.get_stats()
        return result

    def get_metrics(self) -> dict[str, Any]:
        metrics = self.monitor.export_metrics()
        if self.circuit_breaker is not None:
            metrics["circuitBreaker"] = self.circuit_breaker.get_stats()
        return metrics


__all__ = [
    "COMPONENT",
    "ServiceOrchestrator",
    "coerce_outcome",
]
