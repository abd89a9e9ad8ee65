"""
Events module for the Order Service.

Domain events are a closed tagged union (``schemas``) published to the event
bus by ``EventPublisher`` and, once consumed back off the bus, dispatched to
typed handlers by ``consumers.EventHandlerRegistry``.

Event Types Supported:
    ORDER_CREATED, ORDER_UPDATED, ORDER_DELETED, PAYMENT_PROCESSED
"""

from .bus import BusEntry, EventBus, PutEventsResult
from .producers import EventPublisher
from .schemas import (
    EVENT_PAYLOADS,
    DomainEvent,
    EventType,
    OrderCreatedEvent,
    OrderCreatedPayload,
    OrderDeletedEvent,
    OrderDeletedPayload,
    OrderUpdatedEvent,
    OrderUpdatedPayload,
    PaymentProcessedEvent,
    PaymentProcessedPayload,
    PaymentStatus,
)

__all__ = [
    # Events
    "DomainEvent",
    "EventType",
    "EVENT_PAYLOADS",
    "PaymentStatus",
    "OrderCreatedEvent",
    "OrderCreatedPayload",
    "OrderUpdatedEvent",
    "OrderUpdatedPayload",
    "OrderDeletedEvent",
    "OrderDeletedPayload",
    "PaymentProcessedEvent",
    "PaymentProcessedPayload",
    # Transport
    "BusEntry",
    "EventBus",
    "PutEventsResult",
    "EventPublisher",
]
