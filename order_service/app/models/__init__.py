"""
Order Service Models

Storage model of the document store plus the Order domain entity.
"""

from .base import OrderServiceBase
from .document import DocumentRecord
from .order import (
    Address,
    Order,
    OrderBuilder,
    OrderItem,
    OrderPatch,
    OrderStatus,
    calculate_total,
)

__all__ = [
    # Storage
    "OrderServiceBase",
    "DocumentRecord",
    # Domain
    "Address",
    "Order",
    "OrderBuilder",
    "OrderItem",
    "OrderPatch",
    "OrderStatus",
    "calculate_total",
]
