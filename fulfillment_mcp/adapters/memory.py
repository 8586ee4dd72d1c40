"""
In-Memory Fulfillment Adapter.

Built-in adapter registered as ``mock``. Keeps a small seeded catalog of
orders, products, variants, customers, inventory and fulfillments in
process memory, so the server runs end to end without a real backend.

Options:
    fixed_latency_ms: Delay applied to every call (overrides min/max)
    min_latency_ms / max_latency_ms: Uniform random delay range
    error_rate: Probability any operation fails with OPERATION_FAILED
    operation_errors: Per-operation failure probability, e.g. {"cancel_order": 1.0}
    seed: Seed for the latency and error random source

Order totals: 8% tax, free shipping over 100.00, else 10.00.

Not safe against mutation from other threads; every call runs on the
event loop thread.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from ..errors import AdapterError, ValidationError
from ..health import CheckStatus, HealthCheck, HealthReport, HealthStatus
from .base import ORDER_OPERATIONS, QUERY_OPERATIONS, BaseFulfillmentAdapter, OperationOutcome

logger = logging.getLogger(__name__)

TAX_RATE = 0.08
FREE_SHIPPING_THRESHOLD = 100.0
FLAT_SHIPPING = 10.0
DEFAULT_UNIT_PRICE = 50.0
DEFAULT_LOCATION = "WH001"
DEFAULT_PAGE_SIZE = 10
TENANT_ID = "tenant_001"

# Order statuses that block each state-changing operation
_CANCEL_BLOCKED = ("cancelled", "shipped", "delivered")
_FULFILL_BLOCKED = ("cancelled",)
_HOLD_BLOCKED = ("cancelled", "shipped", "delivered", "on_hold", "split")
_SPLIT_BLOCKED = ("cancelled", "shipped", "delivered", "split")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _days_ago(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def _short_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


def _parse_time(value: str | None, field: str = "timestamp") -> datetime | None:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError) as e:
        raise ValidationError(field, f"'{value}' is not a valid date-time") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Seed Data
# =============================================================================


def _address(first: str, last: str, email: str, address1: str, city: str, state: str, zip_code: str) -> dict[str, Any]:
    return {
        "firstName": first,
        "lastName": last,
        "email": email,
        "address1": address1,
        "city": city,
        "stateOrProvince": state,
        "zipCodeOrPostalCode": zip_code,
        "country": "US",
    }


def _seed_products() -> tuple[dict[str, dict], dict[str, dict]]:
    catalog = [
        ("prod_001", "Wireless Bluetooth Headphones", "TechBrand", "variant_001", "WID-001", "Black", 199.99),
        ("prod_002", "Organic Cotton T-Shirt", "EcoWear", "variant_002", "TSH-002", "M / Natural", 29.99),
        ("prod_003", "Single Origin Coffee Beans", "RoastHouse", "variant_003", "COF-003", "1 lb", 18.50),
    ]
    products: dict[str, dict] = {}
    variants: dict[str, dict] = {}
    for product_id, name, vendor, variant_id, sku, option, price in catalog:
        products[product_id] = {
            "id": product_id,
            "externalId": f"ext_{product_id}",
            "name": name,
            "status": "active",
            "vendor": vendor,
            "createdAt": _days_ago(90),
            "updatedAt": _days_ago(5),
            "tenantId": TENANT_ID,
        }
        variants[variant_id] = {
            "id": variant_id,
            "productId": product_id,
            "externalId": f"ext_{variant_id}",
            "sku": sku,
            "title": f"{name} - {option}",
            "price": price,
            "currency": "USD",
            "createdAt": _days_ago(90),
            "updatedAt": _days_ago(5),
            "tenantId": TENANT_ID,
        }
    return products, variants


def _seed_customers() -> dict[str, dict]:
    people = [
        ("cust_001", "John", "Smith", "john.smith@example.com", "100 Main St", "Springfield", "IL", "62701"),
        ("cust_002", "Sarah", "Johnson", "sarah.johnson@example.com", "42 Oak Ave", "Portland", "OR", "97201"),
    ]
    customers: dict[str, dict] = {}
    for customer_id, first, last, email, street, city, state, zip_code in people:
        customers[customer_id] = {
            "id": customer_id,
            "firstName": first,
            "lastName": last,
            "email": email,
            "type": "individual",
            "addresses": [{"name": "home", "address": _address(first, last, email, street, city, state, zip_code)}],
            "createdAt": _days_ago(120),
            "updatedAt": _days_ago(10),
            "tenantId": TENANT_ID,
        }
    return customers


def _seed_inventory() -> dict[tuple[str, str], dict]:
    levels = {
        ("WID-001", "WH001"): (50, 5),
        ("WID-001", "WH002"): (20, 0),
        ("TSH-002", "WH001"): (120, 10),
        ("TSH-002", "WH002"): (35, 5),
        ("COF-003", "WH001"): (8, 2),
        ("COF-003", "WH002"): (0, 0),
    }
    return {
        key: {
            "sku": key[0],
            "locationId": key[1],
            "onHand": on_hand,
            "unavailable": unavailable,
            "available": on_hand - unavailable,
            "tenantId": TENANT_ID,
        }
        for key, (on_hand, unavailable) in levels.items()
    }


def _line(line_id: str, sku: str, name: str, quantity: int, unit_price: float) -> dict[str, Any]:
    return {
        "id": line_id,
        "sku": sku,
        "name": name,
        "quantity": quantity,
        "unitPrice": unit_price,
        "totalPrice": round(quantity * unit_price, 2),
    }


def _seed_orders(customers: dict[str, dict]) -> dict[str, dict]:
    seeds = [
        ("order_001", "#1001", "confirmed", "cust_001", [_line("line_001", "WID-001", "Wireless Headphones", 1, 199.99)], 3),
        ("order_002", "#1002", "processing", "cust_002", [_line("line_002", "TSH-002", "Cotton T-Shirt", 2, 29.99)], 2),
        ("order_003", "#1003", "shipped", "cust_001", [_line("line_003", "COF-003", "Coffee Beans", 3, 18.50)], 7),
    ]
    orders: dict[str, dict] = {}
    for order_id, name, status, customer_id, lines, age in seeds:
        customer = customers[customer_id]
        address = customer["addresses"][0]["address"]
        order = {
            "id": order_id,
            "externalId": f"ext_{order_id}",
            "name": name,
            "status": status,
            "customer": {"id": customer_id, "email": customer["email"]},
            "lineItems": lines,
            "billingAddress": dict(address),
            "shippingAddress": dict(address),
            "currency": "USD",
            "createdAt": _days_ago(age),
            "updatedAt": _days_ago(age - 1),
            "tenantId": TENANT_ID,
        }
        order.update(_totals(lines))
        orders[order_id] = order
    return orders


def _seed_fulfillments(orders: dict[str, dict]) -> dict[str, dict]:
    order = orders["order_003"]
    return {
        "ful_001": {
            "id": "ful_001",
            "orderId": order["id"],
            "status": "shipped",
            "trackingNumber": "TRACK-1003",
            "shippingCarrier": "USPS",
            "lineItems": copy.deepcopy(order["lineItems"]),
            "shippingAddress": dict(order["shippingAddress"]),
            "createdAt": _days_ago(6),
            "updatedAt": _days_ago(6),
            "tenantId": TENANT_ID,
        }
    }


def _totals(lines: list[dict[str, Any]]) -> dict[str, float]:
    subtotal = round(sum(line["totalPrice"] for line in lines), 2)
    tax = round(subtotal * TAX_RATE, 2)
    shipping = 0.0 if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING
    return {
        "subTotalPrice": subtotal,
        "orderTax": tax,
        "shippingPrice": shipping,
        "totalPrice": round(subtotal + tax + shipping, 2),
    }


def _normalize_lines(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    lines = []
    for index, item in enumerate(items, start=1):
        quantity = item.get("quantity", 1)
        unit_price = item.get("unitPrice", DEFAULT_UNIT_PRICE)
        lines.append(
            {
                **item,
                "id": item.get("id") or _short_id("line"),
                "sku": item.get("sku") or f"SKU-{index}",
                "name": item.get("name") or f"Item {index}",
                "quantity": quantity,
                "unitPrice": unit_price,
                "totalPrice": item.get("totalPrice", round(quantity * unit_price, 2)),
            }
        )
    return lines


def _paginate(items: list[dict], params: dict[str, Any]) -> list[dict]:
    bounds = []
    for key in ("createdAt", "updatedAt"):
        low_field, high_field = f"{key}Min", f"{key}Max"
        bounds.append(
            (key, _parse_time(params.get(low_field), low_field), _parse_time(params.get(high_field), high_field))
        )
    for key, low, high in bounds:
        if low is not None:
            items = [i for i in items if _parse_time(i.get(key)) and _parse_time(i[key]) >= low]
        if high is not None:
            items = [i for i in items if _parse_time(i.get(key)) and _parse_time(i[key]) <= high]

    skip = params.get("skip", 0)
    page_size = params.get("pageSize", DEFAULT_PAGE_SIZE)
    return items[skip : skip + page_size]


# =============================================================================
# Adapter
# =============================================================================


class InMemoryAdapter(BaseFulfillmentAdapter):
    """Reference adapter backed by process memory."""

    def __init__(self, options: dict[str, Any] | None = None):
        super().__init__(options)
        self._random = random.Random(self.options.get("seed"))
        self._connected = False

        self.products, self.variants = _seed_products()
        self.customers = _seed_customers()
        self.inventory = _seed_inventory()
        self.orders = _seed_orders(self.customers)
        self.fulfillments = _seed_fulfillments(self.orders)
        self.holds: dict[str, dict] = {}
        self.reservations: dict[str, dict] = {}

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ==================== Simulation ====================

    def _latency_ms(self) -> float:
        fixed = self.options.get("fixed_latency_ms")
        if fixed is not None:
            return float(fixed)
        low = float(self.options.get("min_latency_ms", 0))
        high = float(self.options.get("max_latency_ms", low))
        return self._random.uniform(low, max(low, high))

    async def _simulate(self, operation: str) -> None:
        delay = self._latency_ms()
        if delay > 0:
            await asyncio.sleep(delay / 1000)

        rates = self.options.get("operation_errors") or {}
        rate = rates.get(operation, self.options.get("error_rate", 0.0))
        if rate and self._random.random() < rate:
            code = "CONNECTION_FAILED" if operation == "connect" else "OPERATION_FAILED"
            raise AdapterError(f"Simulated failure in {operation}", code, {"operation": operation})

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise AdapterError("Adapter not connected", "NOT_CONNECTED")

    async def _enter(self, operation: str) -> None:
        await self._simulate(operation)
        self._ensure_connected()

    def _get_order(self, order_id: str) -> dict[str, Any]:
        order = self.orders.get(order_id)
        if order is None:
            raise AdapterError(f"Order not found: {order_id}", "ORDER_NOT_FOUND", {"orderId": order_id})
        return order

    @staticmethod
    def _require_status(order: dict[str, Any], blocked: tuple[str, ...], operation: str) -> None:
        status = order["status"]
        if status in blocked:
            raise AdapterError(
                f"Cannot {operation} order {order['id']} in status {status}",
                "INVALID_ORDER_STATE",
                {"orderId": order["id"], "currentStatus": status, "operation": operation},
            )

    @staticmethod
    def _touch(record: dict[str, Any]) -> None:
        record["updatedAt"] = _now()

    # ==================== Lifecycle ====================

    async def connect(self) -> None:
        await self._simulate("connect")
        self._connected = True
        logger.info("[memory_adapter] Connected")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("[memory_adapter] Disconnected")

    async def health_check(self) -> HealthReport:
        connected = self._connected
        return HealthReport(
            status=HealthStatus.HEALTHY if connected else HealthStatus.UNHEALTHY,
            checks=[
                HealthCheck(
                    name="connection",
                    status=CheckStatus.PASS if connected else CheckStatus.FAIL,
                    message="Connected" if connected else "Not connected",
                ),
                HealthCheck(
                    name="data_store",
                    status=CheckStatus.PASS,
                    message=(
                        f"{len(self.orders)} orders, {len(self.products)} products, "
                        f"{len(self.variants)} variants in memory"
                    ),
                ),
                HealthCheck(
                    name="configuration",
                    status=CheckStatus.PASS,
                    message="In-memory configuration loaded",
                    details=self.config_summary(),
                ),
            ],
        )

    def config_summary(self) -> dict[str, Any]:
        fixed = self.options.get("fixed_latency_ms")
        if fixed is not None:
            latency = f"fixed {fixed}ms"
        else:
            latency = f"{self.options.get('min_latency_ms', 0)}-{self.options.get('max_latency_ms', 0)}ms"
        return {
            "latency": latency,
            "errorRate": self.options.get("error_rate", 0.0),
            "operationErrors": dict(self.options.get("operation_errors") or {}),
        }

    async def get_capabilities(self) -> dict[str, Any]:
        return {
            "name": "mock",
            "operations": list(ORDER_OPERATIONS + QUERY_OPERATIONS),
            "persistent": False,
        }

    async def update_config(self, options: dict[str, Any]) -> None:
        self.options.update(options)
        if "seed" in options:
            self._random = random.Random(options["seed"])
        logger.info(f"[memory_adapter] Configuration updated: {sorted(options)}")

    # ==================== Orders ====================

    async def create_sales_order(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("create_sales_order")

        payload = dict(params["order"])
        lines = _normalize_lines(payload.pop("lineItems", []))
        order_id = _short_id("order")
        now = _now()
        order = {
            **payload,
            "id": order_id,
            "status": "new",
            "lineItems": lines,
            "currency": payload.get("currency", "USD"),
            "createdAt": now,
            "updatedAt": now,
            "tenantId": TENANT_ID,
            **_totals(lines),
        }
        self.orders[order_id] = order
        logger.info(f"[memory_adapter] Order created: {order_id} total={order['totalPrice']}")
        return OperationOutcome.ok(order=copy.deepcopy(order))

    async def cancel_order(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("cancel_order")

        order = self._get_order(params["orderId"])
        self._require_status(order, _CANCEL_BLOCKED, "cancel")

        order["status"] = "cancelled"
        order["cancellation"] = {
            "reason": params.get("reason"),
            "notes": params.get("notes"),
            "notifyCustomer": params.get("notifyCustomer", False),
            "cancelledAt": _now(),
        }
        self._touch(order)
        logger.info(f"[memory_adapter] Order cancelled: {order['id']}")
        return OperationOutcome.ok(order=copy.deepcopy(order))

    async def update_order(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("update_order")

        order = self._get_order(params["id"])
        updates = dict(params["updates"])
        if "lineItems" in updates:
            order["lineItems"] = _normalize_lines(updates.pop("lineItems"))
            order.update(_totals(order["lineItems"]))
        order.update(updates)
        self._touch(order)
        logger.info(f"[memory_adapter] Order updated: {order['id']}")
        return OperationOutcome.ok(order=copy.deepcopy(order))

    async def fulfill_order(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("fulfill_order")

        order = self._get_order(params["orderId"])
        self._require_status(order, _FULFILL_BLOCKED, "fulfill")

        requested = {item["sku"] for item in params["items"]}
        unknown = requested - {line["sku"] for line in order["lineItems"]}
        if unknown:
            sku = sorted(unknown)[0]
            raise AdapterError(
                f"Line item not found on order {order['id']}: {sku}",
                "LINE_ITEM_NOT_FOUND",
                {"orderId": order["id"], "sku": sku},
            )

        shipping = params.get("shippingInfo") or {}
        fulfillment_id = _short_id("ful")
        now = _now()
        fulfillment = {
            "id": fulfillment_id,
            "orderId": order["id"],
            "status": "shipped",
            "trackingNumber": shipping.get("trackingNumber") or f"TRACK-{fulfillment_id}",
            "shippingCarrier": shipping.get("carrier"),
            "service": shipping.get("service"),
            "lineItems": [line for line in order["lineItems"] if line["sku"] in requested],
            "shippingAddress": params.get("shippingAddress") or order.get("shippingAddress"),
            "createdAt": now,
            "updatedAt": now,
            "tenantId": TENANT_ID,
        }
        self.fulfillments[fulfillment_id] = fulfillment

        order["status"] = "shipped"
        self._touch(order)
        logger.info(f"[memory_adapter] Order fulfilled: {order['id']} fulfillment={fulfillment_id}")
        return OperationOutcome.ok(fulfillment=copy.deepcopy(fulfillment))

    async def hold_order(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("hold_order")

        order = self._get_order(params["orderId"])
        self._require_status(order, _HOLD_BLOCKED, "hold")

        hold = {
            "id": _short_id("hold"),
            "orderId": order["id"],
            "reason": params["reason"],
            "priority": params.get("priority", "normal"),
            "releaseDate": params.get("releaseDate"),
            "assignedTo": params.get("assignedTo"),
            "notes": params.get("notes"),
            "allowPartialRelease": params.get("allowPartialRelease", False),
            "previousStatus": order["status"],
            "createdAt": _now(),
        }
        self.holds[hold["id"]] = hold
        order["status"] = "on_hold"
        self._touch(order)
        logger.info(f"[memory_adapter] Order held: {order['id']} reason={hold['reason']}")
        return OperationOutcome.ok(order=copy.deepcopy(order), hold=dict(hold))

    async def split_order(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("split_order")

        parent = self._get_order(params["orderId"])
        self._require_status(parent, _SPLIT_BLOCKED, "split")

        lines_by_sku = {line["sku"]: line for line in parent["lineItems"]}
        requested: dict[str, int] = {}
        for split in params["splits"]:
            for item in split["items"]:
                if item["sku"] not in lines_by_sku:
                    raise AdapterError(
                        f"Line item not found on order {parent['id']}: {item['sku']}",
                        "LINE_ITEM_NOT_FOUND",
                        {"orderId": parent["id"], "sku": item["sku"]},
                    )
                requested[item["sku"]] = requested.get(item["sku"], 0) + item["quantity"]

        for sku, quantity in requested.items():
            available = lines_by_sku[sku]["quantity"]
            if quantity > available:
                raise AdapterError(
                    f"Split requests {quantity} of {sku} but the order holds {available}",
                    "INSUFFICIENT_LINE_QUANTITY",
                    {"sku": sku, "requested": quantity, "available": available},
                )

        children = []
        for index, split in enumerate(params["splits"], start=1):
            lines = [
                {
                    **lines_by_sku[item["sku"]],
                    "id": _short_id("line"),
                    "quantity": item["quantity"],
                    "totalPrice": round(item["quantity"] * lines_by_sku[item["sku"]]["unitPrice"], 2),
                }
                for item in split["items"]
            ]
            now = _now()
            child = {
                **copy.deepcopy(parent),
                "id": f"{parent['id']}-S{index}",
                "name": split.get("splitName") or f"{parent.get('name', parent['id'])}-{index}",
                "status": parent["status"],
                "parentOrderId": parent["id"],
                "lineItems": lines,
                "locationId": split.get("locationId"),
                "shippingMethod": split.get("shippingMethod"),
                "createdAt": now,
                "updatedAt": now,
                **_totals(lines),
            }
            if split.get("shippingAddress"):
                child["shippingAddress"] = dict(split["shippingAddress"])
            self.orders[child["id"]] = child
            children.append(child)

        parent["status"] = "split"
        parent["splitReason"] = params["splitReason"]
        parent["childOrderIds"] = [child["id"] for child in children]
        self._touch(parent)
        logger.info(f"[memory_adapter] Order split: {parent['id']} into {len(children)} orders")
        return OperationOutcome.ok(
            originalOrder=copy.deepcopy(parent),
            orders=copy.deepcopy(children),
        )

    async def reserve_inventory(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("reserve_inventory")

        allow_partial = params.get("allowPartialReservation", False)
        planned = []
        for item in params["items"]:
            location = item.get("locationId") or DEFAULT_LOCATION
            record = self.inventory.get((item["sku"], location))
            available = record["available"] if record else 0
            quantity = item["quantity"]
            if quantity > available:
                if not allow_partial:
                    raise AdapterError(
                        f"Insufficient inventory for {item['sku']} at {location}: "
                        f"requested {quantity}, available {available}",
                        "INSUFFICIENT_INVENTORY",
                        {"sku": item["sku"], "locationId": location, "requested": quantity, "available": available},
                    )
                quantity = available
            planned.append((item, location, record, quantity))

        reserved_items = []
        for item, location, record, quantity in planned:
            if record is not None and quantity > 0:
                record["available"] -= quantity
                record["unavailable"] += quantity
            reserved_items.append(
                {
                    "sku": item["sku"],
                    "locationId": location,
                    "requested": item["quantity"],
                    "reserved": quantity,
                }
            )

        duration = params.get("duration", 15)
        reservation = {
            "id": _short_id("res"),
            "status": "active" if all(i["reserved"] == i["requested"] for i in reserved_items) else "partial",
            "items": reserved_items,
            "reason": params.get("reservationReason"),
            "orderId": params.get("orderId"),
            "customerId": params.get("customerId"),
            "autoRelease": params.get("autoRelease", True),
            "expiresAt": (datetime.now(timezone.utc) + timedelta(minutes=duration)).isoformat(),
            "createdAt": _now(),
        }
        self.reservations[reservation["id"]] = reservation
        logger.info(f"[memory_adapter] Inventory reserved: {reservation['id']} ({reservation['status']})")
        return OperationOutcome.ok(reservation=dict(reservation))

    # ==================== Queries ====================

    async def get_orders(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("get_orders")

        orders = list(self.orders.values())
        for param, key in (("ids", "id"), ("externalIds", "externalId"), ("names", "name"), ("statuses", "status")):
            wanted = params.get(param)
            if wanted:
                orders = [order for order in orders if order.get(key) in wanted]

        return OperationOutcome.ok(orders=copy.deepcopy(_paginate(orders, params)))

    async def get_customers(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("get_customers")

        customers = list(self.customers.values())
        ids, emails = params.get("ids"), params.get("emails")
        if ids or emails:
            customers = [
                c for c in customers if c["id"] in (ids or ()) or c["email"] in (emails or ())
            ]
        return OperationOutcome.ok(customers=copy.deepcopy(_paginate(customers, params)))

    async def get_products(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("get_products")

        ids, skus = params.get("ids") or [], params.get("skus") or []
        if not ids and not skus:
            return OperationOutcome.ok(products=copy.deepcopy(_paginate(list(self.products.values()), params)))

        sku_products = {v["productId"] for v in self.variants.values() if v["sku"] in skus}
        products = [
            p for p in self.products.values()
            if p["id"] in ids or p["externalId"] in ids or p["id"] in sku_products
        ]
        if not products:
            identifier = ids[0] if ids else skus[0]
            raise AdapterError(
                f"Product not found: {identifier}",
                "PRODUCT_NOT_FOUND",
                {"ids": ids, "skus": skus},
            )
        return OperationOutcome.ok(products=copy.deepcopy(products))

    async def get_product_variants(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("get_product_variants")

        ids = params.get("variantIds") or []
        skus = params.get("skus") or []
        product_ids = params.get("productIds") or []
        if not (ids or skus or product_ids):
            return OperationOutcome.ok(
                productVariants=copy.deepcopy(_paginate(list(self.variants.values()), params))
            )

        variants = [
            v for v in self.variants.values()
            if v["id"] in ids or v["sku"] in skus or v["productId"] in product_ids
        ]
        if not variants:
            identifier = (ids or skus or product_ids)[0]
            raise AdapterError(
                f"Product variant not found: {identifier}",
                "PRODUCT_VARIANT_NOT_FOUND",
                {"variantIds": ids, "skus": skus, "productIds": product_ids},
            )
        return OperationOutcome.ok(productVariants=copy.deepcopy(variants))

    async def get_inventory(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("get_inventory")

        locations = params.get("locationIds")
        results = []
        for sku in params["skus"]:
            records = [r for (s, loc), r in self.inventory.items() if s == sku and (not locations or loc in locations)]
            if records:
                results.extend(dict(r) for r in records)
                continue
            for location in locations or [DEFAULT_LOCATION]:
                results.append(
                    {"sku": sku, "locationId": location, "onHand": 0, "unavailable": 0, "available": 0, "tenantId": TENANT_ID}
                )
        return OperationOutcome.ok(inventory=results)

    async def get_fulfillments(self, params: dict[str, Any]) -> OperationOutcome:
        await self._enter("get_fulfillments")

        fulfillments = list(self.fulfillments.values())
        if params.get("ids"):
            fulfillments = [f for f in fulfillments if f["id"] in params["ids"]]
        if params.get("orderIds"):
            fulfillments = [f for f in fulfillments if f["orderId"] in params["orderIds"]]
        return OperationOutcome.ok(fulfillments=copy.deepcopy(_paginate(fulfillments, params)))


# Default export name for package/local loading
Adapter = InMemoryAdapter


__all__ = [
    "Adapter",
    "InMemoryAdapter",
]
