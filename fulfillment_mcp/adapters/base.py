"""
Adapter Capability Contract.

Defines the interface every backend adapter satisfies:

- Lifecycle: connect(), disconnect(), health_check()
- Orders: create_sales_order, cancel_order, update_order, fulfill_order
- Management: hold_order, split_order, reserve_inventory
- Queries: get_orders, get_customers, get_products, get_product_variants,
  get_inventory, get_fulfillments

Optional hooks, used when present:
- initialize(options): runs once before connect()
- cleanup(): best-effort release of resources on shutdown
- get_capabilities(): advertised feature flags
- update_config(options): apply new options without reconnecting

Operations take the validated tool arguments as a dict and return an
OperationOutcome. Failures are reported by raising AdapterError (or one of
the typed errors in fulfillment_mcp.errors); adapters may also return
``OperationOutcome.failure(...)`` for soft failures.

Two ways to implement the contract:
- Subclass BaseFulfillmentAdapter (abstract methods enforce completeness)
- Any class with the same methods (FulfillmentAdapter is a runtime Protocol;
  the factory checks method presence when loading external adapters)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..health import HealthReport


# Methods an adapter must expose; checked in this order
LIFECYCLE_METHODS = ("connect", "disconnect", "health_check")

ORDER_OPERATIONS = (
    "create_sales_order",
    "cancel_order",
    "update_order",
    "fulfill_order",
    "hold_order",
    "split_order",
    "reserve_inventory",
)

QUERY_OPERATIONS = (
    "get_orders",
    "get_customers",
    "get_products",
    "get_product_variants",
    "get_inventory",
    "get_fulfillments",
)

REQUIRED_ADAPTER_METHODS = LIFECYCLE_METHODS + ORDER_OPERATIONS + QUERY_OPERATIONS

OPTIONAL_ADAPTER_HOOKS = ("initialize", "cleanup", "get_capabilities", "update_config")


@dataclass(frozen=True)
class OperationOutcome:
    """
    Tagged success/failure result of an adapter operation.

    On success carries a payload in ``data``; on failure carries an error
    message, an error code and optional diagnostic ``details``. Never both.

    Example:
        return OperationOutcome.ok(order=order)
        return OperationOutcome.failure("Carrier rejected label", "LABEL_REJECTED")
    """

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful outcome cannot carry an error")
        if not self.success and self.data is not None:
            raise ValueError("A failed outcome cannot carry data")
        if not self.success and not self.error:
            raise ValueError("A failed outcome requires an error message")

    @classmethod
    def ok(cls, **data: Any) -> OperationOutcome:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str = "OPERATION_FAILED",
        details: dict[str, Any] | None = None,
    ) -> OperationOutcome:
        return cls(success=False, error=error, error_code=error_code, details=details or {})

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, **(self.data or {})}
        result: dict[str, Any] = {
            "success": False,
            "error": self.error,
            "errorCode": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result


@runtime_checkable
class FulfillmentAdapter(Protocol):
    """Structural type of a backend adapter."""

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def health_check(self) -> HealthReport: ...

    async def create_sales_order(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def cancel_order(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def update_order(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def fulfill_order(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def hold_order(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def split_order(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def reserve_inventory(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def get_orders(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def get_customers(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def get_products(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def get_product_variants(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def get_inventory(self, params: dict[str, Any]) -> OperationOutcome: ...

    async def get_fulfillments(self, params: dict[str, Any]) -> OperationOutcome: ...


def missing_adapter_method(candidate: Any) -> str | None:
    """Name of the first required method ``candidate`` lacks, or None."""
    for method in REQUIRED_ADAPTER_METHODS:
        if not callable(getattr(candidate, method, None)):
            return method
    return None


class BaseFulfillmentAdapter(ABC):
    """
    Base class for adapter implementations.

    Subclasses receive the config's ``options`` mapping in the constructor
    and must implement every operation of the contract.
    """

    def __init__(self, options: dict[str, Any] | None = None):
        self.options = dict(options or {})

    # ==================== Lifecycle ====================

    async def initialize(self, options: dict[str, Any]) -> None:
        """Optional setup hook, called before connect()."""

    async def cleanup(self) -> None:
        """Optional teardown hook, called before disconnect()."""

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def health_check(self) -> HealthReport:
        pass

    async def get_capabilities(self) -> dict[str, Any]:
        return {"operations": list(ORDER_OPERATIONS + QUERY_OPERATIONS)}

    # ==================== Orders ====================

    @abstractmethod
    async def create_sales_order(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def cancel_order(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def update_order(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def fulfill_order(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def hold_order(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def split_order(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def reserve_inventory(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    # ==================== Queries ====================

    @abstractmethod
    async def get_orders(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def get_customers(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def get_products(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def get_product_variants(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def get_inventory(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    @abstractmethod
    async def get_fulfillments(self, params: dict[str, Any]) -> OperationOutcome:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(options={sorted(self.options)})"


__all__ = [
    "LIFECYCLE_METHODS",
    "OPTIONAL_ADAPTER_HOOKS",
    "ORDER_OPERATIONS",
    "QUERY_OPERATIONS",
    "REQUIRED_ADAPTER_METHODS",
    "BaseFulfillmentAdapter",
    "FulfillmentAdapter",
    "OperationOutcome",
    "missing_adapter_method",
]
