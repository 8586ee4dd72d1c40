"""
Input schemas (JSON Schema, Draft 7) for the tool catalog.

Shared fragments (address, line item, pagination) are composed into one
schema per tool. UPDATE_ORDER_SCHEMA's ``updates`` payload is the order
fields schema with every ``required`` constraint stripped.
"""

from __future__ import annotations

from typing import Any

from ..validation import strip_required

PRIORITIES = ["low", "normal", "high", "urgent"]

# =============================================================================
# Shared Fragments
# =============================================================================

ADDRESS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "firstName": {"type": "string"},
        "lastName": {"type": "string"},
        "company": {"type": "string"},
        "address1": {"type": "string"},
        "address2": {"type": "string"},
        "city": {"type": "string"},
        "stateOrProvince": {"type": "string"},
        "zipCodeOrPostalCode": {"type": "string"},
        "country": {"type": "string", "description": "ISO 3166-1 alpha-2 country code"},
        "email": {"type": "string", "format": "email"},
        "phone": {"type": "string"},
    },
}

LINE_ITEM: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "sku": {"type": "string", "minLength": 1, "description": "Product SKU"},
        "name": {"type": "string"},
        "quantity": {"type": "integer", "minimum": 1},
        "unitPrice": {"type": "number", "minimum": 0},
        "totalPrice": {"type": "number", "minimum": 0},
    },
    "required": ["sku", "quantity"],
}

CUSTOMER: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "externalId": {"type": "string"},
        "firstName": {"type": "string"},
        "lastName": {"type": "string"},
        "email": {"type": "string", "format": "email"},
        "phone": {"type": "string"},
        "type": {"type": "string", "enum": ["individual", "company"]},
    },
}

PAGINATION: dict[str, Any] = {
    "createdAtMin": {"type": "string", "format": "date-time", "description": "Minimum created at (inclusive)"},
    "createdAtMax": {"type": "string", "format": "date-time", "description": "Maximum created at (inclusive)"},
    "updatedAtMin": {"type": "string", "format": "date-time", "description": "Minimum updated at (inclusive)"},
    "updatedAtMax": {"type": "string", "format": "date-time", "description": "Maximum updated at (inclusive)"},
    "pageSize": {"type": "integer", "minimum": 1, "default": 10, "description": "Results per page"},
    "skip": {"type": "integer", "minimum": 0, "default": 0, "description": "Results to skip"},
}


def _string_list(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


def _query(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {**properties, **PAGINATION},
        "additionalProperties": False,
    }
    if required:
        schema["required"] = required
    return schema


ORDER_FIELDS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "externalId": {"type": "string", "description": "Order ID in the source system"},
        "name": {"type": "string", "description": "Friendly order identifier"},
        "customer": CUSTOMER,
        "lineItems": {"type": "array", "items": LINE_ITEM, "minItems": 1},
        "billingAddress": ADDRESS,
        "shippingAddress": ADDRESS,
        "currency": {"type": "string", "minLength": 3, "maxLength": 3},
        "notes": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["lineItems"],
}

# =============================================================================
# Order Actions
# =============================================================================

CREATE_SALES_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"order": ORDER_FIELDS},
    "required": ["order"],
    "additionalProperties": False,
}

CANCEL_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "orderId": {"type": "string", "minLength": 1, "description": "ID of the order to cancel"},
        "reason": {"type": "string", "description": "Reason for cancellation"},
        "notifyCustomer": {"type": "boolean"},
        "notes": {"type": "string"},
        "lineItems": {
            "type": "array",
            "description": "Line items to cancel (omit to cancel the whole order)",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "sku": {"type": "string"},
                    "quantity": {"type": "integer", "minimum": 1},
                },
                "required": ["sku", "quantity"],
            },
        },
    },
    "required": ["orderId"],
    "additionalProperties": False,
}

UPDATE_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1, "description": "Order ID"},
        "updates": {
            **strip_required(ORDER_FIELDS),
            "minProperties": 1,
            "additionalProperties": False,
            "description": "Fields to update",
        },
    },
    "required": ["id", "updates"],
    "additionalProperties": False,
}

FULFILL_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "orderId": {"type": "string", "minLength": 1, "description": "Order ID to ship"},
        "items": {
            "type": "array",
            "minItems": 1,
            "description": "Items included in this shipment",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "sku": {"type": "string", "minLength": 1},
                    "quantity": {"type": "integer", "minimum": 1},
                },
                "required": ["sku", "quantity"],
            },
        },
        "shippingInfo": {
            "type": "object",
            "properties": {
                "carrier": {"type": "string"},
                "service": {"type": "string"},
                "trackingNumber": {"type": "string"},
                "trackingUrl": {"type": "string"},
                "estimatedDelivery": {"type": "string"},
                "shippingCost": {"type": "number", "minimum": 0},
                "weight": {"type": "number", "minimum": 0},
            },
        },
        "shippingAddress": ADDRESS,
        "notifyCustomer": {"type": "boolean"},
        "notes": {"type": "string"},
    },
    "required": ["orderId", "items"],
    "additionalProperties": False,
}

# =============================================================================
# Queries
# =============================================================================

GET_ORDERS_SCHEMA = _query(
    {
        "ids": _string_list("Internal order IDs"),
        "externalIds": _string_list("External order IDs from the source system"),
        "statuses": _string_list("Order statuses"),
        "names": _string_list("Friendly order identifiers"),
        "includeLineItems": {"type": "boolean", "default": True},
    }
)

GET_CUSTOMERS_SCHEMA = _query(
    {
        "ids": _string_list("Customer IDs"),
        "emails": {"type": "array", "items": {"type": "string", "format": "email"}},
    }
)

GET_PRODUCTS_SCHEMA = _query(
    {
        "ids": _string_list("Product IDs"),
        "skus": _string_list("SKUs of any variant of the product"),
    }
)

GET_PRODUCT_VARIANTS_SCHEMA = _query(
    {
        "variantIds": _string_list("Variant IDs"),
        "skus": _string_list("Variant SKUs"),
        "productIds": _string_list("Parent product IDs; returns every variant of each"),
    }
)

GET_INVENTORY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "skus": {**_string_list("SKUs to get inventory for"), "minItems": 1},
        "locationIds": _string_list("Warehouse or location IDs (all locations when omitted)"),
    },
    "required": ["skus"],
    "additionalProperties": False,
}

GET_FULFILLMENTS_SCHEMA = _query(
    {
        "ids": _string_list("Fulfillment IDs"),
        "orderIds": _string_list("Order IDs the fulfillments belong to"),
    }
)

# =============================================================================
# Management
# =============================================================================

HOLD_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "orderId": {"type": "string", "minLength": 1, "description": "Order to place on hold"},
        "reason": {
            "type": "string",
            "enum": [
                "payment_verification",
                "address_verification",
                "fraud_review",
                "inventory_check",
                "customer_request",
                "compliance_review",
                "quality_assurance",
                "manual_review",
                "system_maintenance",
                "other",
            ],
        },
        "releaseDate": {"type": "string", "format": "date-time", "description": "Automatic release time"},
        "priority": {"type": "string", "enum": PRIORITIES, "default": "normal"},
        "assignedTo": {"type": "string", "description": "User or team resolving the hold"},
        "notes": {"type": "string"},
        "notifyCustomer": {"type": "boolean", "default": False},
        "allowPartialRelease": {"type": "boolean", "default": False},
    },
    "required": ["orderId", "reason"],
    "additionalProperties": False,
}

SPLIT_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "orderId": {"type": "string", "minLength": 1, "description": "Order to split"},
        "splits": {
            "type": "array",
            "minItems": 2,
            "items": {
                "type": "object",
                "properties": {
                    "splitName": {"type": "string"},
                    "items": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "properties": {
                                "lineItemId": {"type": "string"},
                                "sku": {"type": "string", "minLength": 1},
                                "quantity": {"type": "integer", "minimum": 1},
                            },
                            "required": ["sku", "quantity"],
                        },
                    },
                    "locationId": {"type": "string"},
                    "shippingMethod": {
                        "type": "string",
                        "enum": ["standard", "expedited", "overnight", "ground", "priority", "economy", "pickup"],
                    },
                    "shippingAddress": ADDRESS,
                    "priority": {"type": "string", "enum": PRIORITIES, "default": "normal"},
                    "notes": {"type": "string"},
                },
                "required": ["items"],
            },
        },
        "splitReason": {
            "type": "string",
            "enum": [
                "inventory_availability",
                "shipping_location",
                "shipping_method",
                "fulfillment_capacity",
                "customer_request",
                "delivery_schedule",
                "product_category",
                "vendor_dropship",
                "other",
            ],
        },
        "notifyCustomer": {"type": "boolean", "default": True},
    },
    "required": ["orderId", "splits", "splitReason"],
    "additionalProperties": False,
}

RESERVE_INVENTORY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "sku": {"type": "string", "minLength": 1},
                    "quantity": {"type": "integer", "minimum": 1},
                    "locationId": {"type": "string"},
                    "priority": {"type": "string", "enum": PRIORITIES, "default": "normal"},
                    "notes": {"type": "string"},
                },
                "required": ["sku", "quantity"],
            },
        },
        "duration": {"type": "integer", "minimum": 1, "maximum": 10080, "default": 15, "description": "Minutes"},
        "reservationReason": {
            "type": "string",
            "enum": [
                "order_processing",
                "order_fulfillment",
                "quality_check",
                "customer_hold",
                "system_maintenance",
                "audit_count",
                "transfer_preparation",
                "promotional_hold",
                "other",
            ],
        },
        "orderId": {"type": "string"},
        "customerId": {"type": "string"},
        "autoRelease": {"type": "boolean", "default": True},
        "allowPartialReservation": {"type": "boolean", "default": False},
    },
    "required": ["items"],
    "additionalProperties": False,
}


__all__ = [
    "CANCEL_ORDER_SCHEMA",
    "CREATE_SALES_ORDER_SCHEMA",
    "FULFILL_ORDER_SCHEMA",
    "GET_CUSTOMERS_SCHEMA",
    "GET_FULFILLMENTS_SCHEMA",
    "GET_INVENTORY_SCHEMA",
    "GET_ORDERS_SCHEMA",
    "GET_PRODUCTS_SCHEMA",
    "GET_PRODUCT_VARIANTS_SCHEMA",
    "HOLD_ORDER_SCHEMA",
    "ORDER_FIELDS",
    "RESERVE_INVENTORY_SCHEMA",
    "SPLIT_ORDER_SCHEMA",
    "UPDATE_ORDER_SCHEMA",
]
