"""
Tests for the tool catalog, registry and results.
"""
import asyncio
import json

import pytest

from fulfillment_mcp.adapters import OperationOutcome
from fulfillment_mcp.config import AppSettings
from fulfillment_mcp.errors import ErrorCode, InvalidParamsError, ToolNotFoundError, ValidationError
from fulfillment_mcp.resilience.circuit_breaker import CircuitState
from fulfillment_mcp.resilience.timeout import TimeoutConfig, TimeoutHandler
from fulfillment_mcp.runtime import build_runtime
from fulfillment_mcp.tools import (
    TOOL_NAMES,
    OperationTool,
    ToolAnnotations,
    ToolRegistry,
    ToolRegistryError,
    ToolResult,
)

EXPECTED_TOOLS = [
    "create-sales-order",
    "cancel-order",
    "update-order",
    "fulfill-order",
    "get-orders",
    "get-customers",
    "get-products",
    "get-product-variants",
    "get-inventory",
    "get-fulfillments",
    "hold-order",
    "split-order",
    "reserve-inventory",
]


def make_tool(name="echo", handler=None, schema=None):
    async def echo(args):
        return OperationOutcome.ok(echo=args)

    return OperationTool(
        name=name,
        description="Echo the arguments back",
        input_schema=schema or {"type": "object", "properties": {"value": {"type": "string"}}},
        handler=handler or echo,
    )


# =============================================================================
# ToolResult
# =============================================================================


class TestToolResult:
    def test_success(self):
        result = ToolResult.success("done", structured={"ok": True})

        assert result.to_dict() == {
            "content": [{"type": "text", "text": "done"}],
            "structuredContent": {"ok": True},
        }

    def test_error(self):
        result = ToolResult.error("Order not found: x")

        assert result.is_error
        assert result.text == "Error: Order not found: x"
        assert result.to_dict()["isError"] is True

    def test_from_successful_outcome(self):
        result = ToolResult.from_outcome(OperationOutcome.ok(order={"id": "order_001"}))

        assert not result.is_error
        assert json.loads(result.text) == {"success": True, "order": {"id": "order_001"}}
        assert result.structured_content == {"success": True, "order": {"id": "order_001"}}

    def test_from_failed_outcome(self):
        outcome = OperationOutcome.failure("Carrier rejected label", "LABEL_REJECTED", {"carrier": "ups"})

        result = ToolResult.from_outcome(outcome)

        assert result.is_error
        assert result.text == "Error: Carrier rejected label"
        assert result.structured_content == {"errorCode": "LABEL_REJECTED", "details": {"carrier": "ups"}}

    def test_annotations(self):
        assert ToolAnnotations(title="Get Orders", read_only_hint=True, destructive_hint=False).to_dict() == {
            "title": "Get Orders",
            "readOnlyHint": True,
            "destructiveHint": False,
            "openWorldHint": True,
        }


# =============================================================================
# Registry
# =============================================================================


class TestToolRegistry:
    def test_register_and_lookup(self):
        registry = ToolRegistry()
        tool = make_tool()

        registry.register(tool)

        assert "echo" in registry
        assert registry.get("echo") is tool
        assert registry.get("missing") is None
        assert len(registry) == 1

    def test_duplicate_registration(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        with pytest.raises(ToolRegistryError):
            registry.register(make_tool())

    @pytest.mark.parametrize(
        "schema",
        [
            {"type": "array", "properties": {}},
            {"type": "object"},
            {"type": "object", "properties": {"n": {"type": "not-a-type"}}},
        ],
    )
    def test_malformed_schema_rejected(self, schema):
        registry = ToolRegistry()

        with pytest.raises(ToolRegistryError):
            registry.register(make_tool(schema=schema))
        assert len(registry) == 0

    def test_missing_description_rejected(self):
        tool = OperationTool("echo", "", {"type": "object", "properties": {}}, handler=None)

        with pytest.raises(ToolRegistryError):
            ToolRegistry().register(tool)

    def test_get_required_unknown(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        with pytest.raises(ToolNotFoundError) as exc_info:
            registry.get_required("nope")

        assert exc_info.value.code == ErrorCode.METHOD_NOT_FOUND
        assert exc_info.value.details["available"] == ["echo"]

    def test_mcp_schemas(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        (entry,) = registry.to_mcp_schemas()

        assert entry["name"] == "echo"
        assert entry["inputSchema"]["type"] == "object"
        assert entry["annotations"] == {"openWorldHint": True}


class TestToolExecution:
    @pytest.mark.asyncio
    async def test_execute(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        result = await registry.execute("echo", {"value": "hi"})

        assert result.structured_content == {"success": True, "echo": {"value": "hi"}}

    @pytest.mark.asyncio
    async def test_missing_arguments_default_to_empty(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        result = await registry.execute("echo", None)

        assert result.structured_content["echo"] == {}

    @pytest.mark.asyncio
    async def test_unknown_tool_is_protocol_error(self):
        with pytest.raises(ToolNotFoundError):
            await ToolRegistry().execute("nope", {})

    @pytest.mark.asyncio
    async def test_non_object_arguments(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        with pytest.raises(InvalidParamsError):
            await registry.execute("echo", ["value"])

    @pytest.mark.asyncio
    async def test_schema_violation_is_protocol_error(self):
        registry = ToolRegistry()
        registry.register(make_tool())

        with pytest.raises(ValidationError) as exc_info:
            await registry.execute("echo", {"value": 5})

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_error_result(self):
        async def boom(args):
            raise RuntimeError("database on fire")

        registry = ToolRegistry()
        registry.register(make_tool(handler=boom))

        result = await registry.execute("echo", {})

        assert result.is_error
        assert result.text == "Error: database on fire"
        assert result.structured_content["category"] == "internal"

    @pytest.mark.asyncio
    async def test_protocol_error_from_handler_propagates(self):
        async def invalid(args):
            raise InvalidParamsError("Unsupported combination")

        registry = ToolRegistry()
        registry.register(make_tool(handler=invalid))

        with pytest.raises(InvalidParamsError):
            await registry.execute("echo", {})

    @pytest.mark.asyncio
    async def test_request_timeout_becomes_error_result(self):
        async def slow(args):
            await asyncio.sleep(0.2)
            return OperationOutcome.ok()

        registry = ToolRegistry(timeouts=TimeoutHandler(TimeoutConfig(request_ms=30, adapter_ms=10)))
        registry.register(make_tool(handler=slow))

        result = await registry.execute("echo", {})

        assert result.is_error
        assert result.structured_content["code"] == ErrorCode.TIMEOUT
        assert result.structured_content["retryable"] is True


# =============================================================================
# Catalog
# =============================================================================


class TestCatalog:
    def test_all_tools_registered(self, runtime):
        assert list(TOOL_NAMES) == EXPECTED_TOOLS
        assert runtime.tools.list_names() == EXPECTED_TOOLS

    def test_query_tools_are_read_only(self, runtime):
        schemas = {entry["name"]: entry for entry in runtime.tools.to_mcp_schemas()}

        assert schemas["get-orders"]["annotations"]["readOnlyHint"] is True
        assert "readOnlyHint" not in schemas["cancel-order"]["annotations"]

    @pytest.mark.asyncio
    async def test_query_through_catalog(self, runtime):
        await runtime.start()
        try:
            result = await runtime.tools.execute("get-orders", {"ids": ["order_002"]})
        finally:
            await runtime.shutdown()

        assert not result.is_error
        assert result.structured_content["orders"][0]["id"] == "order_002"

    @pytest.mark.asyncio
    async def test_create_order_through_catalog(self, runtime, sample_order):
        await runtime.start()
        try:
            result = await runtime.tools.execute("create-sales-order", {"order": sample_order})
        finally:
            await runtime.shutdown()

        order = result.structured_content["order"]
        assert order["status"] == "new"
        assert order["totalPrice"] == 129.6

    @pytest.mark.asyncio
    async def test_business_failure_is_error_result(self, runtime):
        await runtime.start()
        try:
            result = await runtime.tools.execute("cancel-order", {"orderId": "order_404"})
        finally:
            await runtime.shutdown()

        assert result.is_error
        assert result.text == "Error: Order not found: order_404"
        assert result.structured_content["errorCode"] == "ORDER_NOT_FOUND"
        assert result.structured_content["category"] == "not_found"

    @pytest.mark.asyncio
    async def test_state_conflict_is_error_result(self, runtime):
        await runtime.start()
        try:
            result = await runtime.tools.execute("cancel-order", {"orderId": "order_003"})
        finally:
            await runtime.shutdown()

        assert result.is_error
        assert result.structured_content["errorCode"] == "INVALID_ORDER_STATE"

    @pytest.mark.asyncio
    async def test_missing_required_field(self, runtime):
        await runtime.start()
        try:
            with pytest.raises(ValidationError) as exc_info:
                await runtime.tools.execute("get-inventory", {})
        finally:
            await runtime.shutdown()

        assert "skus" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unknown_property_rejected(self, runtime):
        with pytest.raises(ValidationError):
            await runtime.tools.execute("get-orders", {"orderIds": ["order_001"]})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["not-a-date", "2024-01-01", "2024-13-01T00:00:00Z"])
    async def test_malformed_date_time_rejected(self, runtime, value):
        with pytest.raises(ValidationError) as exc_info:
            await runtime.tools.execute("get-orders", {"createdAtMin": value})

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.field == "createdAtMin"


# =============================================================================
# Circuit Breaker Isolation
# =============================================================================


class TestBreakerIsolation:
    @pytest.fixture
    def guarded_runtime(self):
        settings = AppSettings(
            retry={"enabled": False},
            circuit_breaker={"failure_threshold": 2},
            monitoring={"enabled": False},
        )
        return build_runtime(settings)

    @pytest.mark.asyncio
    async def test_business_errors_leave_breaker_closed(self, guarded_runtime):
        await guarded_runtime.start()
        try:
            for _ in range(3):
                not_found = await guarded_runtime.tools.execute("cancel-order", {"orderId": "order_404"})
                conflict = await guarded_runtime.tools.execute("cancel-order", {"orderId": "order_003"})
                assert not_found.is_error and conflict.is_error

            result = await guarded_runtime.tools.execute("get-orders", {})
        finally:
            await guarded_runtime.shutdown()

        assert not result.is_error
        assert guarded_runtime.orchestrator.circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_rejected_input_leaves_breaker_closed(self, guarded_runtime):
        await guarded_runtime.start()
        try:
            for _ in range(5):
                with pytest.raises(ValidationError):
                    await guarded_runtime.orchestrator.get_orders({"createdAtMin": "yesterday"})

            outcome = await guarded_runtime.orchestrator.get_orders({})
        finally:
            await guarded_runtime.shutdown()

        assert outcome.success
        assert guarded_runtime.orchestrator.circuit_breaker.state == CircuitState.CLOSED
        assert guarded_runtime.monitor.error_rate == 0.0
