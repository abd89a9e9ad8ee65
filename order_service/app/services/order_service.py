"""
Order use cases: persistence through the repository, then a domain event.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.exceptions import OrderNotFoundError
from ..events.producers import EventPublisher
from ..events.schemas import (
    OrderCreatedEvent,
    OrderCreatedPayload,
    OrderDeletedEvent,
    OrderDeletedPayload,
    OrderUpdatedEvent,
    OrderUpdatedPayload,
)
from ..models.order import Order, OrderBuilder, OrderPatch, calculate_total
from ..repository.base import QueryParams, Repository
from ..repository.order_repository import CUSTOMER_ID_INDEX
from ..schemas.order import CreateOrderRequest, UpdateOrderRequest
from ..utils.logging import setup_order_logging as setup_logging

logger = setup_logging("order_service_orders")


@dataclass
class OrderPage:
    orders: List[Order] = field(default_factory=list)
    continuation_token: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return {"orders": self.orders, "continuationToken": self.continuation_token}


def generate_order_id() -> str:
    return str(uuid.uuid4())


class OrderService:
    def __init__(
        self,
        repository: Repository[Order, str],
        event_publisher: EventPublisher,
        customer_index_name: str = CUSTOMER_ID_INDEX,
    ):
        self.repository = repository
        self.event_publisher = event_publisher
        self.customer_index_name = customer_index_name

    async def create_order(self, request: CreateOrderRequest) -> Order:
        logger.info("Creating new order", extra={"customer_id": request.customer_id})

        order = (
            OrderBuilder()
            .with_order_id(generate_order_id())
            .with_customer_id(request.customer_id)
            .with_customer_email(str(request.customer_email))
            .with_items([item.to_item() for item in request.items])
            .with_shipping_address(request.shipping_address.to_address())
            .with_metadata(request.metadata)
            .build()
        )

        saved = await self.repository.save(order, if_not_exists=True)

        await self.event_publisher.publish(
            OrderCreatedEvent(
                payload=OrderCreatedPayload(
                    order_id=saved.order_id,
                    customer_id=saved.customer_id,
                    items=saved.items,
                    total_amount=saved.total_amount,
                    created_at=saved.created_at,
                )
            )
        )

        logger.info("Order created successfully", extra={"order_id": saved.order_id})
        return saved

    async def get_order(self, order_id: str) -> Optional[Order]:
        logger.info("Getting order", extra={"order_id": order_id})

        order = await self.repository.find_by_id(order_id)
        if order is None:
            logger.info("Order not found", extra={"order_id": order_id})
        return order

    async def update_order(self, request: UpdateOrderRequest) -> Order:
        order_id = request.order_id
        logger.info("Updating order", extra={"order_id": order_id})

        existing = await self.repository.find_by_id(order_id)
        if existing is None:
            raise OrderNotFoundError(order_id)

        changes: Dict[str, Any] = {
            "updated_at": datetime.now(timezone.utc),
            "version": existing.version + 1,
        }
        if request.items is not None:
            items = [item.to_item() for item in request.items]
            changes["items"] = items
            changes["total_amount"] = calculate_total(items)
        if request.status is not None:
            changes["status"] = request.status
        if request.shipping_address is not None:
            changes["shipping_address"] = request.shipping_address.to_address()
        patch = OrderPatch(**changes)

        # Rejected if another writer bumped the version since the read
        updated = await self.repository.update(
            order_id, patch, expected_version=existing.version
        )

        await self.event_publisher.publish(
            OrderUpdatedEvent(
                payload=OrderUpdatedPayload(
                    order_id=updated.order_id,
                    updates=patch.to_updates(),
                    updated_at=updated.updated_at,
                )
            )
        )

        logger.info(
            "Order updated successfully",
            extra={"order_id": order_id, "version": updated.version},
        )
        return updated

    async def delete_order(self, order_id: str, reason: Optional[str] = None) -> None:
        logger.info("Deleting order", extra={"order_id": order_id})

        existing = await self.repository.find_by_id(order_id)
        if existing is None:
            raise OrderNotFoundError(order_id)

        await self.repository.delete(order_id)

        await self.event_publisher.publish(
            OrderDeletedEvent(
                payload=OrderDeletedPayload(
                    order_id=order_id,
                    deleted_at=datetime.now(timezone.utc),
                    reason=reason,
                )
            )
        )

        logger.info("Order deleted successfully", extra={"order_id": order_id})

    async def list_orders(
        self,
        customer_id: Optional[str] = None,
        limit: int = 20,
        continuation_token: Optional[str] = None,
    ) -> OrderPage:
        logger.info(
            "Listing orders", extra={"customer_id": customer_id, "limit": limit}
        )
        params = QueryParams(limit=limit, continuation_token=continuation_token)

        if customer_id:
            result = await self.repository.query_by_index(
                self.customer_index_name,
                "customerId = :customerId",
                {":customerId": customer_id},
                params,
            )
        else:
            result = await self.repository.find_all(params)

        return OrderPage(orders=result.items, continuation_token=result.continuation_token)
