"""
Order Service consumer worker.

``python -m order_service.app.worker events`` consumes the event bus topic and
dispatches domain events to their handlers. ``python -m order_service.app.worker
queue`` drains the work queue in batches.
"""

import argparse
import asyncio
from typing import List, Optional

from .core.setting import OrderSettings, get_settings
from .events.base.kafka_client import KafkaMessageConsumer, KafkaMessageProducer
from .events.consumers import (
    BusEventConsumer,
    QueueMessageProcessor,
    build_event_handler_registry,
    process_queue_batch,
)
from .services.messaging_service import QUEUE_BATCH_SIZE, NotificationService
from .utils.logging import setup_order_logging
from .utils.retry import RetryPolicy

logger = setup_order_logging("order_service_worker")


async def run_event_consumer(settings: OrderSettings) -> None:
    producer = KafkaMessageProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        client_id=f"{settings.SERVICE_NAME}-notifications",
        enable_graceful_degradation=settings.EVENT_PUBLISH_GRACEFUL_DEGRADATION,
    )
    notifications = NotificationService(producer, RetryPolicy.from_settings(settings))
    registry = build_event_handler_registry(
        notifications, settings.NOTIFICATIONS_TOPIC
    )
    bus_consumer = BusEventConsumer(registry)

    consumer = KafkaMessageConsumer(
        topic=settings.EVENT_BUS_NAME,
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        group_id=f"{settings.KAFKA_GROUP_ID}-events",
        client_id=settings.SERVICE_NAME,
    )

    await producer.start()
    try:
        await consumer.start()
        logger.info(
            "Event consumer running", extra={"topic": settings.EVENT_BUS_NAME}
        )
        await consumer.consume(bus_consumer.handle_message)
    finally:
        await consumer.stop()
        await producer.stop()


async def run_queue_consumer(settings: OrderSettings) -> None:
    processor = QueueMessageProcessor()
    consumer = KafkaMessageConsumer(
        topic=settings.ORDER_QUEUE_NAME,
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        group_id=f"{settings.KAFKA_GROUP_ID}-queue",
        client_id=settings.SERVICE_NAME,
    )

    async def handle_batch(records) -> None:
        await process_queue_batch(records, processor)

    await consumer.start()
    try:
        logger.info(
            "Queue consumer running", extra={"topic": settings.ORDER_QUEUE_NAME}
        )
        await consumer.consume_batches(handle_batch, max_records=QUEUE_BATCH_SIZE)
    finally:
        await consumer.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Order Service consumer worker")
    parser.add_argument(
        "mode",
        choices=["events", "queue"],
        help="events: dispatch bus events to handlers; queue: process work-queue batches",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_order_logging("order_service_worker", log_level=settings.LOG_LEVEL)

    runner = run_event_consumer if args.mode == "events" else run_queue_consumer
    try:
        asyncio.run(runner(settings))
    except KeyboardInterrupt:
        logger.info("Worker stopped", extra={"mode": args.mode})


if __name__ == "__main__":
    main()
