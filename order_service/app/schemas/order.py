from typing import Dict, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from ..models.order import Address, CamelModel, OrderItem, OrderStatus

ZIP_CODE_PATTERN = r"^\d{5}(-\d{4})?$"


class OrderItemRequest(CamelModel):
    """Line item as submitted by API clients"""

    product_id: UUID
    name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(gt=0)
    price: float = Field(gt=0)

    def to_item(self) -> OrderItem:
        return OrderItem(
            product_id=str(self.product_id),
            name=self.name,
            quantity=self.quantity,
            price=self.price,
        )


class AddressRequest(CamelModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    zip_code: str = Field(pattern=ZIP_CODE_PATTERN)
    country: str = "US"

    def to_address(self) -> Address:
        return Address(**self.model_dump())


class ReplacementAddressRequest(AddressRequest):
    """Address replacing an existing one; the country must be restated"""

    country: str


class CreateOrderRequest(CamelModel):
    customer_id: str = Field(min_length=1)
    customer_email: EmailStr
    items: List[OrderItemRequest] = Field(min_length=1)
    shipping_address: AddressRequest
    metadata: Optional[Dict[str, str]] = None


class UpdateOrderBody(CamelModel):
    """PUT body; only the fields present are applied"""

    items: Optional[List[OrderItemRequest]] = Field(default=None, min_length=1)
    status: Optional[OrderStatus] = None
    shipping_address: Optional[ReplacementAddressRequest] = None


class UpdateOrderRequest(UpdateOrderBody):
    order_id: str = Field(min_length=1)


class DeleteOrderBody(CamelModel):
    reason: Optional[str] = None


class QueryOrdersParams(CamelModel):
    customer_id: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=100)
    next_token: Optional[str] = None

    @field_validator("customer_id", "next_token")
    @classmethod
    def blank_as_missing(cls, value: Optional[str]) -> Optional[str]:
        return value or None
