"""
Order Service event handling and transport base classes and interfaces.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Type

from ..schemas import EventPayload


class EventHandler(ABC):
    """Abstract base class for domain event handlers"""

    # Payload model this handler accepts; checked when the handler is registered
    payload_type: ClassVar[Type[EventPayload]]

    @abstractmethod
    async def handle(self, event: Any) -> None:
        """Handle the event"""
        pass


class MessageProducer(ABC):
    """Abstract base class for the client that carries bus, queue and
    notification messages"""

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    @abstractmethod
    async def send(self, topic: str, value: Any, key: Optional[str] = None) -> None:
        """Deliver one message, raising when the transport rejects it"""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
