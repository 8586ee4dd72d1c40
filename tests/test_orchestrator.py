"""
Tests for the service orchestrator.
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from fulfillment_mcp.adapters import AdapterFactory, InMemoryAdapter, OperationOutcome
from fulfillment_mcp.errors import AdapterError, AdapterNotInitializedError, OperationTimeoutError
from fulfillment_mcp.health import HealthMonitor
from fulfillment_mcp.manager import AdapterManager
from fulfillment_mcp.orchestrator import COMPONENT, ServiceOrchestrator, coerce_outcome
from fulfillment_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from fulfillment_mcp.resilience.retry import NoBackoff, RetryPolicy
from fulfillment_mcp.resilience.timeout import TimeoutConfig, TimeoutHandler


class FlakyAdapter(InMemoryAdapter):
    """Fails the first ``failures`` get_orders calls with a connection error."""

    def __init__(self, options=None):
        super().__init__(options)
        self.failures = self.options.get("failures", 0)
        self.attempts = 0

    async def get_orders(self, params):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise AdapterError("Connection reset", "ECONNRESET")
        return await super().get_orders(params)


class SlowAdapter(InMemoryAdapter):
    async def get_customers(self, params):
        await asyncio.sleep(0.2)
        return await super().get_customers(params)


class PlainAdapter(InMemoryAdapter):
    """Returns plain dicts or unsupported values from queries."""

    async def get_products(self, params):
        return {"success": True, "products": []}

    async def get_fulfillments(self, params):
        return ["not", "an", "outcome"]


def make_orchestrator(**kwargs):
    factory = AdapterFactory(
        {"mock": InMemoryAdapter, "flaky": FlakyAdapter, "slow": SlowAdapter, "plain": PlainAdapter}
    )
    monitor = HealthMonitor()
    manager = AdapterManager(factory, health_check_interval=None, monitor=monitor)
    return ServiceOrchestrator(manager, monitor=monitor, **kwargs)


def fast_retry(max_attempts=3):
    return RetryPolicy(max_attempts=max_attempts, backoff=NoBackoff())


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_operation_before_initialize(self):
        orchestrator = make_orchestrator()

        with pytest.raises(AdapterNotInitializedError) as exc_info:
            await orchestrator.get_orders({})

        assert "not initialized" in str(exc_info.value)
        assert not orchestrator.is_initialized

    @pytest.mark.asyncio
    async def test_initialize_and_cleanup(self):
        orchestrator = make_orchestrator()

        await orchestrator.initialize({"type": "builtin", "name": "mock"})
        assert orchestrator.is_initialized

        await orchestrator.cleanup()
        assert not orchestrator.is_initialized

    @pytest.mark.asyncio
    async def test_delegates_to_adapter(self):
        orchestrator = make_orchestrator()
        await orchestrator.initialize({"type": "builtin", "name": "mock"})

        outcome = await orchestrator.get_orders({"ids": ["order_001"]})

        assert outcome.success
        assert [o["id"] for o in outcome.data["orders"]] == ["order_001"]

    @pytest.mark.asyncio
    async def test_update_adapter_config_resets_breaker(self):
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60)
        orchestrator = make_orchestrator(circuit_breaker=breaker)
        await orchestrator.initialize({"type": "builtin", "name": "flaky", "options": {"failures": 5}})
        with pytest.raises(AdapterError):
            await orchestrator.get_orders({})
        assert breaker.state == CircuitState.OPEN

        await orchestrator.update_adapter_config({"type": "builtin", "name": "mock"})

        assert breaker.state == CircuitState.CLOSED
        assert (await orchestrator.get_orders({})).success


# =============================================================================
# Resilience
# =============================================================================


class TestResilience:
    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self):
        orchestrator = make_orchestrator(retry_policy=fast_retry(3))
        await orchestrator.initialize({"type": "builtin", "name": "flaky", "options": {"failures": 2}})

        outcome = await orchestrator.get_orders({})

        assert outcome.success
        assert orchestrator.manager.get_adapter().attempts == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        orchestrator = make_orchestrator(retry_policy=fast_retry(2))
        await orchestrator.initialize({"type": "builtin", "name": "flaky", "options": {"failures": 5}})

        with pytest.raises(AdapterError) as exc_info:
            await orchestrator.get_orders({})

        assert exc_info.value.error_code == "ECONNRESET"
        assert orchestrator.manager.get_adapter().attempts == 2

    @pytest.mark.asyncio
    async def test_business_errors_not_retried(self):
        orchestrator = make_orchestrator(retry_policy=fast_retry(3))
        await orchestrator.initialize({"type": "builtin", "name": "mock"})

        with pytest.raises(AdapterError) as exc_info:
            await orchestrator.cancel_order({"orderId": "order_404"})

        assert exc_info.value.error_code == "ORDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_adapter_timeout(self):
        timeouts = TimeoutHandler(TimeoutConfig(request_ms=500, adapter_ms=30))
        orchestrator = make_orchestrator(timeouts=timeouts)
        await orchestrator.initialize({"type": "builtin", "name": "slow"})

        with pytest.raises(OperationTimeoutError):
            await orchestrator.get_customers({})

    @pytest.mark.asyncio
    async def test_open_breaker_fails_fast(self):
        breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60)
        orchestrator = make_orchestrator(circuit_breaker=breaker)
        await orchestrator.initialize({"type": "builtin", "name": "flaky", "options": {"failures": 10}})
        adapter = orchestrator.manager.get_adapter()

        for _ in range(2):
            with pytest.raises(AdapterError):
                await orchestrator.get_orders({})

        with pytest.raises(CircuitOpenError):
            await orchestrator.get_orders({})
        assert adapter.attempts == 2


# =============================================================================
# Metrics
# =============================================================================


class TestMetrics:
    @pytest.mark.asyncio
    async def test_success_and_failure_recorded(self):
        orchestrator = make_orchestrator()
        await orchestrator.initialize({"type": "builtin", "name": "mock"})

        await orchestrator.get_orders({})
        with pytest.raises(AdapterError):
            await orchestrator.hold_order({"orderId": "order_404", "reason": "fraud_review"})

        orders = orchestrator.monitor.get_metrics(COMPONENT, "get_orders")
        holds = orchestrator.monitor.get_metrics(COMPONENT, "hold_order")
        assert orders.invocation_count == 1 and orders.failure_count == 0
        assert holds.invocation_count == 1 and holds.failure_count == 1
        assert "order_404" in holds.last_error

    @pytest.mark.asyncio
    async def test_business_failures_excluded_from_error_rate(self):
        orchestrator = make_orchestrator()
        await orchestrator.initialize({"type": "builtin", "name": "mock"})

        for _ in range(3):
            with pytest.raises(AdapterError):
                await orchestrator.cancel_order({"orderId": "order_404"})

        metrics = orchestrator.monitor.get_metrics(COMPONENT, "cancel_order")
        assert metrics.failure_count == 3
        assert metrics.backend_failure_count == 0
        assert orchestrator.monitor.error_rate == 0.0

    @pytest.mark.asyncio
    async def test_get_metrics(self):
        orchestrator = make_orchestrator(circuit_breaker=CircuitBreaker(name="adapter"))
        await orchestrator.initialize({"type": "builtin", "name": "mock"})
        await orchestrator.get_inventory({"skus": ["WID-001"]})

        metrics = orchestrator.get_metrics()

        assert f"{COMPONENT}:get_inventory" in metrics["operations"]
        assert metrics["performance"]["samples"] == 1
        assert metrics["circuitBreaker"]["state"] == "closed"

    @pytest.mark.asyncio
    async def test_check_health(self):
        orchestrator = make_orchestrator()
        await orchestrator.initialize({"type": "builtin", "name": "mock"})

        health = await orchestrator.check_health()

        assert health["status"] == "healthy"
        assert health["adapter"]["status"] == "healthy"
        assert health["manager"]["state"] == "ready"
        assert "circuitBreaker" not in health


# =============================================================================
# Result Coercion
# =============================================================================


class TestCoerceOutcome:
    def test_outcome_passes_through(self):
        outcome = OperationOutcome.ok(orders=[])
        assert coerce_outcome(outcome, "get_orders") is outcome

    def test_success_dict(self):
        outcome = coerce_outcome({"success": True, "orders": [{"id": "o1"}]}, "get_orders")

        assert outcome.success
        assert outcome.data == {"orders": [{"id": "o1"}]}

    def test_failure_dict(self):
        outcome = coerce_outcome(
            {"success": False, "error": "Carrier rejected label", "errorCode": "LABEL_REJECTED"},
            "fulfill_order",
        )

        assert not outcome.success
        assert outcome.error == "Carrier rejected label"
        assert outcome.error_code == "LABEL_REJECTED"

    def test_unsupported_result(self):
        with pytest.raises(AdapterError) as exc_info:
            coerce_outcome(42, "get_orders")

        assert exc_info.value.error_code == "INVALID_RESULT"

    @pytest.mark.asyncio
    async def test_plain_adapter_results(self):
        orchestrator = make_orchestrator()
        await orchestrator.initialize({"type": "builtin", "name": "plain"})

        products = await orchestrator.get_products({})
        assert products.success and products.data == {"products": []}

        with pytest.raises(AdapterError) as exc_info:
            await orchestrator.get_fulfillments({})
        assert exc_info.value.error_code == "INVALID_RESULT"


# =============================================================================
# Mocked Adapter
# =============================================================================


class TestWithMockedAdapter:
    @pytest.fixture
    def adapter(self):
        adapter = MagicMock(spec=InMemoryAdapter)
        adapter.get_orders.return_value = OperationOutcome.ok(orders=[])
        adapter.reserve_inventory.return_value = OperationOutcome.failure(
            "Warehouse offline", "WAREHOUSE_UNAVAILABLE"
        )
        return adapter

    @pytest.fixture
    def orchestrator(self, adapter):
        factory = AdapterFactory({"mocked": lambda options: adapter})
        manager = AdapterManager(factory, health_check_interval=None)
        return ServiceOrchestrator(manager)

    @pytest.mark.asyncio
    async def test_lifecycle_hooks_called(self, orchestrator, adapter):
        await orchestrator.initialize({"type": "builtin", "name": "mocked", "options": {"region": "eu"}})

        adapter.initialize.assert_awaited_once_with({"region": "eu"})
        adapter.connect.assert_awaited_once()

        await orchestrator.cleanup()

        adapter.cleanup.assert_awaited_once()
        adapter.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_params_passed_through(self, orchestrator, adapter):
        await orchestrator.initialize({"type": "builtin", "name": "mocked"})
        params = {"statuses": ["processing"], "pageSize": 5}

        await orchestrator.get_orders(params)

        adapter.get_orders.assert_awaited_once_with(params)

    @pytest.mark.asyncio
    async def test_soft_failure_recorded_as_failure(self, orchestrator, adapter):
        await orchestrator.initialize({"type": "builtin", "name": "mocked"})

        outcome = await orchestrator.reserve_inventory({"items": [{"sku": "WID-001", "quantity": 1}]})

        assert not outcome.success
        metrics = orchestrator.monitor.get_metrics(COMPONENT, "reserve_inventory")
        assert metrics.failure_count == 1
        assert metrics.last_error == "Warehouse offline"
        assert metrics.backend_failure_count == 1
