"""
Order schemas package
"""

from .order import (
    AddressRequest,
    CreateOrderRequest,
    DeleteOrderBody,
    OrderItemRequest,
    QueryOrdersParams,
    ReplacementAddressRequest,
    UpdateOrderBody,
    UpdateOrderRequest,
)
from .response import (
    create_error_response,
    create_response,
    error_response,
    success_response,
)

__all__ = [
    # Request schemas
    "OrderItemRequest",
    "AddressRequest",
    "ReplacementAddressRequest",
    "CreateOrderRequest",
    "UpdateOrderBody",
    "UpdateOrderRequest",
    "DeleteOrderBody",
    "QueryOrdersParams",
    # Response envelopes
    "success_response",
    "error_response",
    "create_response",
    "create_error_response",
]
