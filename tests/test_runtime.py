"""
Tests for runtime assembly, the HTTP app and the stdio entry point.
"""
import pytest
from fastapi.testclient import TestClient

from fulfillment_mcp.app.main import create_app
from fulfillment_mcp.config import AppSettings
from fulfillment_mcp.errors import AdapterConfigurationError
from fulfillment_mcp.manager import AdapterState
from fulfillment_mcp.resilience.circuit_breaker import CircuitState
from fulfillment_mcp.resilience.classifier import ErrorClassifier
from fulfillment_mcp.resilience.retry import NO_RETRY
from fulfillment_mcp.runtime import build_circuit_breaker, build_retry_policy, build_runtime


# =============================================================================
# Runtime
# =============================================================================


class TestRuntime:
    def test_components_are_wired(self, runtime):
        assert runtime.orchestrator.manager is runtime.manager
        assert runtime.orchestrator.monitor is runtime.monitor
        assert len(runtime.tools) == 13
        assert runtime.orchestrator.retry_policy is NO_RETRY
        assert runtime.orchestrator.circuit_breaker is None

    def test_each_runtime_is_independent(self, settings):
        first = build_runtime(settings)
        second = build_runtime(settings)

        assert first.factory is not second.factory
        assert first.monitor is not second.monitor

    def test_resilience_from_settings(self):
        settings = AppSettings(
            retry={"max_attempts": 4, "initial_delay_ms": 200, "max_delay_ms": 1000},
            circuit_breaker={"failure_threshold": 3, "reset_timeout_ms": 5000},
        )
        classifier = ErrorClassifier()

        policy = build_retry_policy(settings, classifier)
        breaker = build_circuit_breaker(settings, classifier)

        assert policy.max_attempts == 4
        assert policy.get_delay(1) == pytest.approx(0.2)
        assert breaker.failure_threshold == 3
        assert breaker.reset_timeout == 5.0
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_start_call_shutdown(self, runtime):
        await runtime.start()
        assert runtime.manager.state == AdapterState.READY

        result = await runtime.tools.execute("get-inventory", {"skus": ["COF-003"], "locationIds": ["WH001"]})
        assert result.structured_content["inventory"][0]["available"] == 6

        await runtime.shutdown()
        assert runtime.manager.state == AdapterState.UNINITIALIZED
        assert len(runtime.factory) == 0

    @pytest.mark.asyncio
    async def test_start_with_unknown_adapter(self):
        runtime = build_runtime(
            AppSettings(adapter={"type": "builtin", "name": "netsuite"}, monitoring={"enabled": False})
        )

        with pytest.raises(AdapterConfigurationError):
            await runtime.start()

        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, runtime):
        await runtime.start()

        await runtime.shutdown()
        await runtime.shutdown()

        assert runtime.manager.state == AdapterState.UNINITIALIZED


# =============================================================================
# HTTP App
# =============================================================================


class TestHttpApp:
    @pytest.fixture
    def client(self, settings):
        with TestClient(create_app(settings)) as client:
            yield client

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "fulfillment-mcp"

    def test_mcp_request(self, client):
        response = client.post(
            "/mcp",
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "method": "tools/call",
                "params": {"name": "get-orders", "arguments": {"statuses": ["shipped"]}},
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert [o["id"] for o in body["result"]["structuredContent"]["orders"]] == ["order_003"]

    def test_mcp_notification_accepted(self, client):
        response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert response.status_code == 202
        assert response.content == b""

    def test_mcp_parse_error(self, client):
        response = client.post("/mcp", content=b"{oops", headers={"content-type": "application/json"})

        assert response.json()["error"]["code"] == -32700

    def test_health(self, client):
        response = client.get("/health")

        body = response.json()
        assert body["status"] == "healthy"
        assert body["adapter"]["status"] == "healthy"
        assert body["manager"]["state"] == "ready"

    def test_metrics_after_call(self, client):
        client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "get-customers"}},
        )

        metrics = client.get("/metrics").json()

        assert metrics["operations"]["ServiceOrchestrator:get_customers"]["invocation_count"] == 1
        assert metrics["performance"]["samples"] == 1
