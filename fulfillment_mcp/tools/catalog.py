"""
Tool catalog.

The fixed set of tools exposed over the protocol. Each entry names the
tool, describes it, declares its input schema and binds it to the
ServiceOrchestrator operation that serves it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from . import schemas
from .base import OperationTool, ToolAnnotations

if TYPE_CHECKING:
    from ..orchestrator import ServiceOrchestrator
    from .base import Tool
    from .registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    operation: str
    description: str
    input_schema: dict[str, Any]
    annotations: ToolAnnotations


def _query(title: str) -> ToolAnnotations:
    return ToolAnnotations(title=title, read_only_hint=True, destructive_hint=False, idempotent_hint=True)


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    # Order actions
    ToolDefinition(
        name="create-sales-order",
        operation="create_sales_order",
        description=(
            "Creates a new sales order from customer, address and line item details. "
            "Totals, tax and shipping are calculated by the backend. Returns the created order."
        ),
        input_schema=schemas.CREATE_SALES_ORDER_SCHEMA,
        annotations=ToolAnnotations(title="Create Sales Order", destructive_hint=False),
    ),
    ToolDefinition(
        name="cancel-order",
        operation="cancel_order",
        description=(
            "Cancels an order that has not shipped yet. Fails if the order is already "
            "cancelled, shipped or delivered."
        ),
        input_schema=schemas.CANCEL_ORDER_SCHEMA,
        annotations=ToolAnnotations(title="Cancel Order", destructive_hint=True),
    ),
    ToolDefinition(
        name="update-order",
        operation="update_order",
        description=(
            "Updates fields of an existing order such as addresses, customer details, notes "
            "or line items. Only the provided fields change."
        ),
        input_schema=schemas.UPDATE_ORDER_SCHEMA,
        annotations=ToolAnnotations(title="Update Order", destructive_hint=False, idempotent_hint=True),
    ),
    ToolDefinition(
        name="fulfill-order",
        operation="fulfill_order",
        description=(
            "Marks an order (or some of its line items) as shipped and records the shipment "
            "with carrier and tracking details. Returns the created fulfillment."
        ),
        input_schema=schemas.FULFILL_ORDER_SCHEMA,
        annotations=ToolAnnotations(title="Fulfill Order", destructive_hint=False),
    ),
    # Queries
    ToolDefinition(
        name="get-orders",
        operation="get_orders",
        description=(
            "Finds orders by internal ID, external ID, friendly name or status, with date "
            "range filters and pagination. Returns an empty list when nothing matches."
        ),
        input_schema=schemas.GET_ORDERS_SCHEMA,
        annotations=_query("Get Orders"),
    ),
    ToolDefinition(
        name="get-customers",
        operation="get_customers",
        description="Finds customers by ID or email address.",
        input_schema=schemas.GET_CUSTOMERS_SCHEMA,
        annotations=_query("Get Customers"),
    ),
    ToolDefinition(
        name="get-products",
        operation="get_products",
        description="Finds products by product ID or by the SKU of any of their variants.",
        input_schema=schemas.GET_PRODUCTS_SCHEMA,
        annotations=_query("Get Products"),
    ),
    ToolDefinition(
        name="get-product-variants",
        operation="get_product_variants",
        description="Finds product variants by variant ID, SKU or parent product ID.",
        input_schema=schemas.GET_PRODUCT_VARIANTS_SCHEMA,
        annotations=_query("Get Product Variants"),
    ),
    ToolDefinition(
        name="get-inventory",
        operation="get_inventory",
        description=(
            "Returns on-hand, unavailable and available quantities for SKUs, per location "
            "or across all locations."
        ),
        input_schema=schemas.GET_INVENTORY_SCHEMA,
        annotations=_query("Get Inventory"),
    ),
    ToolDefinition(
        name="get-fulfillments",
        operation="get_fulfillments",
        description="Finds shipments by fulfillment ID or by the order they belong to.",
        input_schema=schemas.GET_FULFILLMENTS_SCHEMA,
        annotations=_query("Get Fulfillments"),
    ),
    # Management
    ToolDefinition(
        name="hold-order",
        operation="hold_order",
        description=(
            "Temporarily stops processing of an order for review (payment or address "
            "verification, fraud review, customer request). Prevents shipping while "
            "preserving the order."
        ),
        input_schema=schemas.HOLD_ORDER_SCHEMA,
        annotations=ToolAnnotations(title="Hold Order", destructive_hint=False),
    ),
    ToolDefinition(
        name="split-order",
        operation="split_order",
        description=(
            "Divides an order into two or more child orders, for example to ship from "
            "different warehouses or with different shipping methods. Child orders keep a "
            "reference to the original."
        ),
        input_schema=schemas.SPLIT_ORDER_SCHEMA,
        annotations=ToolAnnotations(title="Split Order", destructive_hint=True),
    ),
    ToolDefinition(
        name="reserve-inventory",
        operation="reserve_inventory",
        description=(
            "Locks inventory for a period to guarantee availability during multi-step "
            "processes. Fails when stock is insufficient unless partial reservation is allowed."
        ),
        input_schema=schemas.RESERVE_INVENTORY_SCHEMA,
        annotations=ToolAnnotations(title="Reserve Inventory", destructive_hint=False),
    ),
)

TOOL_NAMES = tuple(definition.name for definition in TOOL_DEFINITIONS)


def build_tools(orchestrator: ServiceOrchestrator) -> list[Tool]:
    """Bind every catalog entry to its orchestrator operation."""
    return [
        OperationTool(
            name=definition.name,
            description=definition.description,
            input_schema=definition.input_schema,
            handler=getattr(orchestrator, definition.operation),
            annotations=definition.annotations,
        )
        for definition in TOOL_DEFINITIONS
    ]


def register_all_tools(registry: ToolRegistry, orchestrator: ServiceOrchestrator) -> ToolRegistry:
    for tool in build_tools(orchestrator):
        registry.register(tool)
    logger.info(f"[tool_catalog] Registered {len(TOOL_DEFINITIONS)} tools")
    return registry


__all__ = [
    "TOOL_DEFINITIONS",
    "TOOL_NAMES",
    "ToolDefinition",
    "build_tools",
    "register_all_tools",
]
