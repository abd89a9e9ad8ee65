"""
Domain events published by the order service.

A domain event is a closed tagged union: ``type`` is the discriminant and
each tag fixes its payload model. Events are frozen once created.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import ConfigDict, Field, TypeAdapter

from ..models.order import CamelModel, OrderItem


class EventType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    ORDER_DELETED = "ORDER_DELETED"
    PAYMENT_PROCESSED = "PAYMENT_PROCESSED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class EventPayload(CamelModel):
    model_config = ConfigDict(frozen=True)


class OrderCreatedPayload(EventPayload):
    order_id: str
    customer_id: str
    items: List[OrderItem]
    total_amount: float
    created_at: datetime


class OrderUpdatedPayload(EventPayload):
    order_id: str
    updates: Dict[str, Any]
    updated_at: datetime


class OrderDeletedPayload(EventPayload):
    order_id: str
    deleted_at: datetime
    reason: Optional[str] = None


class PaymentProcessedPayload(EventPayload):
    order_id: str
    payment_id: str
    amount: float = Field(gt=0)
    status: PaymentStatus
    processed_at: datetime


class OrderCreatedEvent(EventPayload):
    type: Literal["ORDER_CREATED"] = "ORDER_CREATED"
    payload: OrderCreatedPayload


class OrderUpdatedEvent(EventPayload):
    type: Literal["ORDER_UPDATED"] = "ORDER_UPDATED"
    payload: OrderUpdatedPayload


class OrderDeletedEvent(EventPayload):
    type: Literal["ORDER_DELETED"] = "ORDER_DELETED"
    payload: OrderDeletedPayload


class PaymentProcessedEvent(EventPayload):
    type: Literal["PAYMENT_PROCESSED"] = "PAYMENT_PROCESSED"
    payload: PaymentProcessedPayload


DomainEvent = Annotated[
    Union[OrderCreatedEvent, OrderUpdatedEvent, OrderDeletedEvent, PaymentProcessedEvent],
    Field(discriminator="type"),
]

domain_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)

# Payload model fixed for each tag
EVENT_PAYLOADS: Mapping[EventType, Type[EventPayload]] = {
    EventType.ORDER_CREATED: OrderCreatedPayload,
    EventType.ORDER_UPDATED: OrderUpdatedPayload,
    EventType.ORDER_DELETED: OrderDeletedPayload,
    EventType.PAYMENT_PROCESSED: PaymentProcessedPayload,
}


def event_type_of(event: Any) -> EventType:
    return EventType(event.type)


def parse_domain_event(detail_type: str, detail: Any) -> Any:
    """Rebuild a typed event from a bus ``detailType`` and its ``detail``"""
    return domain_event_adapter.validate_python({"type": detail_type, "payload": detail})


def serialize_payload(event: Any) -> str:
    return event.payload.model_dump_json(by_alias=True, exclude_none=True)
