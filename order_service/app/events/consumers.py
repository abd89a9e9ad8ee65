"""
Order service event consumers.

Bus envelopes are turned back into typed domain events and dispatched through
the handler registry; work-queue batches are processed message by message,
concurrently and independently.
"""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

from ..core.exceptions import BatchProcessingError
from ..services.messaging_service import NotificationService
from ..utils.logging import setup_order_logging as setup_logging
from .base import EventHandler
from .base.kafka_client import QueueRecord
from .schemas import (
    EVENT_PAYLOADS,
    EventType,
    OrderCreatedPayload,
    OrderDeletedPayload,
    OrderUpdatedPayload,
    PaymentProcessedPayload,
    event_type_of,
    parse_domain_event,
)

logger = setup_logging("order-consumer-events")

EVENT_TYPE_VALUES = frozenset(event_type.value for event_type in EventType)


class EventHandlerRegistry:
    """One handler per event type; the last registration wins"""

    def __init__(self) -> None:
        self._handlers: Dict[EventType, EventHandler] = {}

    def register(self, event_type: EventType, handler: EventHandler) -> None:
        event_type = EventType(event_type)
        expected = EVENT_PAYLOADS[event_type]
        if getattr(handler, "payload_type", None) is not expected:
            raise TypeError(
                f"{type(handler).__name__} does not handle {expected.__name__} "
                f"payloads required by {event_type.value}"
            )

        logger.info("Registering event handler", extra={"event_type": event_type.value})
        self._handlers[event_type] = handler

    def get(self, event_type: EventType) -> Optional[EventHandler]:
        return self._handlers.get(EventType(event_type))

    async def dispatch(self, event: Any) -> None:
        event_type = event_type_of(event)
        handler = self._handlers.get(event_type)

        if handler is None:
            logger.warning(
                "No handler registered for event type",
                extra={"event_type": event_type.value},
            )
            return

        logger.info("Dispatching event to handler", extra={"event_type": event_type.value})
        try:
            await handler.handle(event)
        except Exception as e:
            logger.error(
                "Error handling event",
                extra={"event_type": event_type.value, "error": str(e)},
            )
            raise
        logger.info("Event handled successfully", extra={"event_type": event_type.value})


class OrderCreatedHandler(EventHandler):
    """Notify subscribers that a new order was placed"""

    payload_type = OrderCreatedPayload

    def __init__(self, notifications: NotificationService, topic: str = ""):
        self.notifications = notifications
        self.topic = topic

    async def handle(self, event: Any) -> None:
        payload = event.payload
        logger.info("Handling ORDER_CREATED event", extra={"order_id": payload.order_id})

        if self.topic:
            await self.notifications.publish_structured(
                self.topic,
                {
                    "type": EventType.ORDER_CREATED.value,
                    "orderId": payload.order_id,
                    "customerId": payload.customer_id,
                    "totalAmount": payload.total_amount,
                    "itemCount": len(payload.items),
                },
                "New Order Created",
            )

        logger.info("ORDER_CREATED event handled successfully")


class OrderUpdatedHandler(EventHandler):
    payload_type = OrderUpdatedPayload

    async def handle(self, event: Any) -> None:
        logger.info(
            "Handling ORDER_UPDATED event",
            extra={
                "order_id": event.payload.order_id,
                "updated_attributes": sorted(event.payload.updates),
            },
        )


class OrderDeletedHandler(EventHandler):
    payload_type = OrderDeletedPayload

    async def handle(self, event: Any) -> None:
        logger.info(
            "Handling ORDER_DELETED event",
            extra={"order_id": event.payload.order_id, "reason": event.payload.reason},
        )


class PaymentProcessedHandler(EventHandler):
    """Notify subscribers about a payment status change"""

    payload_type = PaymentProcessedPayload

    def __init__(self, notifications: NotificationService, topic: str = ""):
        self.notifications = notifications
        self.topic = topic

    async def handle(self, event: Any) -> None:
        payload = event.payload
        logger.info(
            "Handling PAYMENT_PROCESSED event",
            extra={"order_id": payload.order_id, "status": payload.status.value},
        )

        if self.topic:
            await self.notifications.publish_structured(
                self.topic,
                {
                    "type": EventType.PAYMENT_PROCESSED.value,
                    "orderId": payload.order_id,
                    "paymentId": payload.payment_id,
                    "status": payload.status.value,
                    "amount": payload.amount,
                },
                "Payment Status Update",
            )

        logger.info("PAYMENT_PROCESSED event handled successfully")


def build_event_handler_registry(
    notifications: NotificationService, notifications_topic: str = ""
) -> EventHandlerRegistry:
    registry = EventHandlerRegistry()
    registry.register(
        EventType.ORDER_CREATED, OrderCreatedHandler(notifications, notifications_topic)
    )
    registry.register(EventType.ORDER_UPDATED, OrderUpdatedHandler())
    registry.register(EventType.ORDER_DELETED, OrderDeletedHandler())
    registry.register(
        EventType.PAYMENT_PROCESSED,
        PaymentProcessedHandler(notifications, notifications_topic),
    )
    return registry


class BusEventConsumer:
    """Turns consumed bus envelopes into domain events"""

    def __init__(self, registry: EventHandlerRegistry):
        self.registry = registry

    async def handle_message(self, envelope: Mapping[str, Any]) -> None:
        detail_type = envelope.get("detailType")
        logger.info(
            "Processing bus event",
            extra={"detail_type": detail_type, "source": envelope.get("source")},
        )

        if detail_type not in EVENT_TYPE_VALUES:
            logger.warning(
                "Skipping bus event with unknown type",
                extra={"detail_type": detail_type},
            )
            return

        detail = envelope.get("detail")
        if isinstance(detail, (str, bytes)):
            detail = json.loads(detail)

        event = parse_domain_event(detail_type, detail)
        await self.registry.dispatch(event)
        logger.info("Event processed successfully", extra={"detail_type": detail_type})


QueueHandler = Callable[[Any], Awaitable[None]]


async def process_order(data: Any) -> None:
    logger.info("Processing order", extra={"data": data})


async def send_email(data: Any) -> None:
    logger.info("Sending email", extra={"data": data})


class QueueMessageProcessor:
    """Routes work-queue messages ``{type, data}`` to a processor per type"""

    def __init__(self, processors: Optional[Mapping[str, QueueHandler]] = None):
        if processors is None:
            processors = {"PROCESS_ORDER": process_order, "SEND_EMAIL": send_email}
        self.processors: Dict[str, QueueHandler] = dict(processors)

    def register(self, message_type: str, processor: QueueHandler) -> None:
        self.processors[message_type] = processor

    async def process(self, record: QueueRecord) -> None:
        logger.info("Processing message", extra={"message_id": record.message_id})
        message = await self._unwrap(record.body)

        message_type = message.get("type")
        processor = self.processors.get(message_type)
        if processor is None:
            logger.warning(
                "Unknown message type", extra={"type": message_type or "undefined"}
            )
            return

        await processor(message.get("data"))
        logger.info("Message processed successfully", extra={"message_id": record.message_id})

    async def _unwrap(self, envelope: Any) -> Dict[str, Any]:
        if isinstance(envelope, dict) and "body" in envelope:
            # Delayed messages are held until they become visible
            wait = envelope.get("availableAt", 0) - time.time()
            if wait > 0:
                await asyncio.sleep(wait)
            envelope = envelope["body"]
        if isinstance(envelope, (str, bytes)):
            envelope = json.loads(envelope)
        if not isinstance(envelope, dict):
            raise ValueError("Queue message must be a JSON object")
        return envelope


async def process_queue_batch(
    records: Sequence[QueueRecord], processor: QueueMessageProcessor
) -> None:
    """Process every record; fail afterwards if any of them failed"""
    logger.info("Processing queue messages", extra={"message_count": len(records)})

    results = await asyncio.gather(
        *(processor.process(record) for record in records), return_exceptions=True
    )

    failed_ids = []
    for record, result in zip(records, results):
        if isinstance(result, Exception):
            logger.error(
                "Error processing message",
                extra={"message_id": record.message_id, "error": str(result)},
            )
            failed_ids.append(record.message_id)
        elif isinstance(result, BaseException):
            raise result

    if failed_ids:
        logger.error("Some messages failed to process", extra={"failed_messages": failed_ids})
        raise BatchProcessingError(failed_ids)

    logger.info("All messages processed successfully")
