"""
Event bus transport.

Entries are delivered one by one over the shared message producer; the bus
name selects the topic. The result reports each entry individually so the
caller decides what a partial failure means.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..utils.logging import setup_order_logging
from .base import MessageProducer

logger = setup_order_logging("order_event_bus")


@dataclass(frozen=True)
class BusEntry:
    source: str
    detail_type: str
    detail: str
    bus_name: str

    def to_envelope(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "detailType": self.detail_type,
            "detail": self.detail,
            "busName": self.bus_name,
        }


@dataclass
class EntryResult:
    detail_type: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_code is not None


@dataclass
class PutEventsResult:
    failed_entry_count: int = 0
    entries: List[EntryResult] = field(default_factory=list)


class EventBus:
    def __init__(self, producer: MessageProducer):
        self.producer = producer

    async def put_events(self, entries: Sequence[BusEntry]) -> PutEventsResult:
        result = PutEventsResult()
        for entry in entries:
            try:
                await self.producer.send(entry.bus_name, entry.to_envelope())
                result.entries.append(EntryResult(detail_type=entry.detail_type))
            except Exception as e:
                logger.warning(
                    "Event bus entry failed",
                    extra={
                        "bus_name": entry.bus_name,
                        "detail_type": entry.detail_type,
                        "error": str(e),
                    },
                )
                result.failed_entry_count += 1
                result.entries.append(
                    EntryResult(
                        detail_type=entry.detail_type,
                        error_code=type(e).__name__,
                        error_message=str(e),
                    )
                )
        return result
