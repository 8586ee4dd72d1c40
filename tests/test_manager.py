"""
Tests for the adapter manager lifecycle.
"""
import asyncio

import pytest

from fulfillment_mcp.adapters import AdapterFactory, InMemoryAdapter
from fulfillment_mcp.errors import AdapterConfigurationError, AdapterError, AdapterNotInitializedError
from fulfillment_mcp.health import HealthMonitor, HealthStatus
from fulfillment_mcp.manager import AdapterManager, AdapterState
from fulfillment_mcp.resilience.timeout import TimeoutConfig, TimeoutHandler


class CountingAdapter(InMemoryAdapter):
    """In-memory adapter that records lifecycle calls."""

    constructed = 0

    def __init__(self, options=None):
        super().__init__(options)
        CountingAdapter.constructed += 1
        self.calls = []

    async def initialize(self, options):
        self.calls.append(("initialize", options))

    async def connect(self):
        self.calls.append("connect")
        await asyncio.sleep(self.options.get("connect_delay", 0.02))
        if self.options.get("fail_connect"):
            raise AdapterError("Connection refused", "CONNECTION_FAILED")
        await super().connect()

    async def cleanup(self):
        self.calls.append("cleanup")
        await asyncio.sleep(self.options.get("cleanup_delay", 0))

    async def disconnect(self):
        self.calls.append("disconnect")
        await super().disconnect()


@pytest.fixture
def counting_factory():
    CountingAdapter.constructed = 0
    return AdapterFactory({"counting": CountingAdapter, "mock": InMemoryAdapter})


def counting(**options):
    return {"type": "builtin", "name": "counting", "options": options}


# =============================================================================
# Initialization
# =============================================================================


class TestInitialize:
    @pytest.mark.asyncio
    async def test_initialize_reaches_ready(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        assert manager.state == AdapterState.UNINITIALIZED

        adapter = await manager.initialize(counting(region="eu"))

        assert manager.state == AdapterState.READY
        assert manager.get_adapter() is adapter
        assert adapter.calls == [("initialize", {"region": "eu"}), "connect"]

    def test_get_adapter_before_initialize(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        with pytest.raises(AdapterNotInitializedError):
            manager.get_adapter()

    @pytest.mark.asyncio
    async def test_concurrent_initialize_is_single_flight(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        results = await asyncio.gather(*(manager.initialize(counting()) for _ in range(10)))

        assert CountingAdapter.constructed == 1
        assert results[0].calls.count("connect") == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_concurrent_failure_shared_by_all_callers(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        results = await asyncio.gather(
            *(manager.initialize(counting(fail_connect=True)) for _ in range(5)),
            return_exceptions=True,
        )

        assert all(isinstance(r, AdapterError) for r in results)
        assert CountingAdapter.constructed == 1
        assert manager.state == AdapterState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_different_config_waits_for_in_flight(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        first, second = await asyncio.gather(
            manager.initialize(counting(tenant="a")),
            manager.initialize(counting(tenant="b")),
        )

        assert first is not second
        assert manager.get_adapter() is second
        # The first adapter was torn down before the second connected
        assert first.calls[-2:] == ["cleanup", "disconnect"]
        assert CountingAdapter.constructed == 2

    @pytest.mark.asyncio
    async def test_failure_resets_state(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        with pytest.raises(AdapterError):
            await manager.initialize(counting(fail_connect=True))

        assert manager.state == AdapterState.UNINITIALIZED
        assert manager.config is None
        with pytest.raises(AdapterNotInitializedError):
            manager.get_adapter()

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        with pytest.raises(AdapterConfigurationError):
            await manager.initialize({"type": "builtin", "name": "missing"})

        assert manager.state == AdapterState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_reinitialize_cleans_up_previous(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        first = await manager.initialize(counting(tenant="a"))

        second = await manager.initialize(counting(tenant="b"))

        assert "cleanup" in first.calls
        assert first.is_connected is False
        assert manager.get_adapter() is second


# =============================================================================
# Health Monitoring
# =============================================================================


class TestHealthMonitoring:
    @pytest.mark.asyncio
    async def test_periodic_check_runs_and_caches(self, counting_factory):
        monitor = HealthMonitor()
        manager = AdapterManager(counting_factory, health_check_interval=0.02, monitor=monitor)

        await manager.initialize(counting())
        await asyncio.sleep(0.05)

        assert manager.health_monitoring_active
        assert manager.last_health_status.status == HealthStatus.HEALTHY
        assert manager.last_health_check_at is not None
        assert monitor.get_system_health().status == HealthStatus.HEALTHY

        await manager.cleanup()
        assert not manager.health_monitoring_active

    @pytest.mark.asyncio
    async def test_disabled_interval_starts_no_task(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        await manager.initialize(counting())

        assert not manager.health_monitoring_active

    @pytest.mark.asyncio
    async def test_check_health_never_raises(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        adapter = await manager.initialize(counting())

        async def broken():
            raise RuntimeError("health endpoint exploded")

        adapter.health_check = broken
        report = await manager.check_health()

        assert report.status == HealthStatus.UNHEALTHY
        assert "health endpoint exploded" in report.message

    @pytest.mark.asyncio
    async def test_hanging_check_bounded_by_adapter_timeout(self, counting_factory):
        timeouts = TimeoutHandler(TimeoutConfig(request_ms=200, adapter_ms=30))
        manager = AdapterManager(counting_factory, health_check_interval=None, timeouts=timeouts)
        adapter = await manager.initialize(counting())

        async def hangs():
            await asyncio.sleep(0.2)

        adapter.health_check = hangs
        report = await manager.check_health()

        assert report.status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_dict_reports_are_coerced(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        adapter = await manager.initialize(counting())

        async def plain():
            return {"status": "degraded", "message": "slow replica"}

        adapter.health_check = plain
        report = await manager.check_health()

        assert report.status == HealthStatus.DEGRADED
        assert report.message == "slow replica"

    @pytest.mark.asyncio
    async def test_uninitialized_is_unhealthy(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        report = await manager.check_health()

        assert report.status == HealthStatus.UNHEALTHY


# =============================================================================
# Configuration and Cleanup
# =============================================================================


class TestConfigurationAndCleanup:
    @pytest.mark.asyncio
    async def test_update_options_in_place(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        adapter = await manager.initialize({"type": "builtin", "name": "mock"})

        updated = await manager.update_config({"type": "builtin", "name": "mock", "options": {"error_rate": 0.5}})

        assert updated is adapter
        assert adapter.options["error_rate"] == 0.5
        assert manager.config.options == {"error_rate": 0.5}

    @pytest.mark.asyncio
    async def test_update_to_other_adapter_reinitializes(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        first = await manager.initialize({"type": "builtin", "name": "mock"})

        second = await manager.update_config(counting())

        assert second is not first
        assert isinstance(second, CountingAdapter)

    @pytest.mark.asyncio
    async def test_get_capabilities(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        await manager.initialize({"type": "builtin", "name": "mock"})

        capabilities = await manager.get_capabilities()

        assert capabilities["name"] == "mock"

    @pytest.mark.asyncio
    async def test_get_info(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        await manager.initialize({"type": "builtin", "name": "mock"})

        info = manager.get_info()

        assert info["state"] == "ready"
        assert info["adapter"] == "InMemoryAdapter"
        assert info["cacheKey"] == "builtin:mock"
        assert info["healthMonitoring"] is False

    @pytest.mark.asyncio
    async def test_cleanup_is_idempotent(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=0.05)
        adapter = await manager.initialize(counting())

        await manager.cleanup()
        await manager.cleanup()
        await manager.cleanup()

        assert manager.state == AdapterState.UNINITIALIZED
        assert adapter.calls.count("cleanup") == 1
        assert not manager.health_monitoring_active

    @pytest.mark.asyncio
    async def test_concurrent_cleanup_tears_down_once(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        adapter = await manager.initialize(counting(cleanup_delay=0.05))

        await asyncio.gather(manager.cleanup(), manager.cleanup(), manager.cleanup())

        assert manager.state == AdapterState.UNINITIALIZED
        assert adapter.calls.count("cleanup") == 1
        assert adapter.calls.count("disconnect") == 1

    @pytest.mark.asyncio
    async def test_cleanup_tolerates_failing_hook(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)
        adapter = await manager.initialize(counting())

        async def failing_cleanup():
            raise RuntimeError("cannot flush")

        adapter.cleanup = failing_cleanup
        await manager.cleanup()

        assert manager.state == AdapterState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_cleanup_before_initialize(self, counting_factory):
        manager = AdapterManager(counting_factory, health_check_interval=None)

        await manager.cleanup()

        assert manager.state == AdapterState.UNINITIALIZED
