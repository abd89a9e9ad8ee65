from dataclasses import asdict
from typing import Any, Dict, Optional, Sequence

from ..core.exceptions import EventPublishError
from ..utils.logging import setup_order_logging as setup_logging
from ..utils.retry import RetryPolicy, retry_with_policy
from .bus import BusEntry, EventBus
from .schemas import event_type_of, serialize_payload

logger = setup_logging("order-producer-events")


class EventPublisher:
    """Publishes domain events to the event bus under a fixed source and bus name"""

    def __init__(
        self,
        event_bus: EventBus,
        bus_name: str,
        source: str = "order-service",
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.event_bus = event_bus
        self.bus_name = bus_name
        self.source = source
        self.retry_policy = retry_policy or RetryPolicy()

    def _to_entry(self, event: Any) -> BusEntry:
        return BusEntry(
            source=self.source,
            detail_type=event_type_of(event).value,
            detail=serialize_payload(event),
            bus_name=self.bus_name,
        )

    async def _put(self, entries: Sequence[BusEntry]) -> None:
        result = await self.event_bus.put_events(entries)
        if result.failed_entry_count > 0:
            failed = [asdict(entry) for entry in result.entries if entry.failed]
            raise EventPublishError(
                f"Failed to publish {result.failed_entry_count} of "
                f"{len(entries)} events",
                failed_entries=failed,
            )

    async def publish(self, event: Any) -> None:
        entry = self._to_entry(event)
        log_data: Dict[str, Any] = {"event_type": entry.detail_type}
        logger.info("Publishing event", extra=log_data)

        try:
            await retry_with_policy(lambda: self._put([entry]), self.retry_policy, logger)
        except Exception as e:
            logger.error(
                "Failed to publish event after retries",
                extra={**log_data, "error": str(e)},
            )
            raise

        logger.info("Event published successfully", extra=log_data)

    async def publish_batch(self, events: Sequence[Any]) -> None:
        entries = [self._to_entry(event) for event in events]
        log_data: Dict[str, Any] = {"count": len(entries)}
        logger.info("Publishing batch of events", extra=log_data)

        try:
            await retry_with_policy(lambda: self._put(entries), self.retry_policy, logger)
        except Exception as e:
            logger.error(
                "Failed to publish batch events after retries",
                extra={**log_data, "error": str(e)},
            )
            raise

        logger.info("Batch events published successfully", extra=log_data)
