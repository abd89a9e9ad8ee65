from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.exceptions import OrderBuildError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase documents and JSON"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItem(CamelModel):
    product_id: str
    name: str
    quantity: int
    price: float


class Address(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "US"


class Order(CamelModel):
    order_id: str
    customer_id: str
    customer_email: str
    items: List[OrderItem]
    status: OrderStatus = OrderStatus.PENDING
    total_amount: float = Field(ge=0)
    shipping_address: Address
    metadata: Optional[Dict[str, str]] = None
    created_at: datetime
    updated_at: datetime
    version: int = Field(ge=1)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OrderPatch(CamelModel):
    """
    The closed set of order attributes an update may touch.

    Only fields explicitly passed to the constructor end up in the update.
    """

    updated_at: datetime
    version: int
    items: Optional[List[OrderItem]] = None
    total_amount: Optional[float] = None
    status: Optional[OrderStatus] = None
    shipping_address: Optional[Address] = None

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


def calculate_total(items: Sequence[OrderItem]) -> float:
    return sum(item.price * item.quantity for item in items)


class OrderBuilder:
    """Fluent builder that enforces the fields an order cannot exist without"""

    def __init__(self) -> None:
        self._order_id: Optional[str] = None
        self._customer_id: Optional[str] = None
        self._customer_email: Optional[str] = None
        self._items: Optional[List[OrderItem]] = None
        self._total_amount: float = 0
        self._status: Optional[OrderStatus] = None
        self._shipping_address: Optional[Address] = None
        self._metadata: Optional[Dict[str, str]] = None

    def with_order_id(self, order_id: str) -> "OrderBuilder":
        self._order_id = order_id
        return self

    def with_customer_id(self, customer_id: str) -> "OrderBuilder":
        self._customer_id = customer_id
        return self

    def with_customer_email(self, email: str) -> "OrderBuilder":
        self._customer_email = email
        return self

    def with_items(self, items: Sequence[OrderItem]) -> "OrderBuilder":
        self._items = list(items)
        self._total_amount = calculate_total(self._items)
        return self

    def with_status(self, status: OrderStatus) -> "OrderBuilder":
        self._status = status
        return self

    def with_shipping_address(self, address: Address) -> "OrderBuilder":
        self._shipping_address = address
        return self

    def with_metadata(self, metadata: Optional[Dict[str, str]]) -> "OrderBuilder":
        if metadata is not None:
            self._metadata = metadata
        return self

    def build(self) -> Order:
        if not self._order_id:
            raise OrderBuildError("Order ID is required")
        if not self._customer_id:
            raise OrderBuildError("Customer ID is required")
        if not self._customer_email:
            raise OrderBuildError("Customer email is required")
        if not self._items:
            raise OrderBuildError("Order must have at least one item")
        if self._shipping_address is None:
            raise OrderBuildError("Shipping address is required")

        now = datetime.now(timezone.utc)
        return Order(
            order_id=self._order_id,
            customer_id=self._customer_id,
            customer_email=self._customer_email,
            items=self._items,
            status=self._status or OrderStatus.PENDING,
            total_amount=self._total_amount,
            shipping_address=self._shipping_address,
            metadata=self._metadata,
            created_at=now,
            updated_at=now,
            version=1,
        )
