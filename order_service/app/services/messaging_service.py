"""
Work-queue and notification senders over the shared message producer.
"""

import json
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Set

from ..core.exceptions import MessageDeliveryError
from ..events.base import MessageProducer
from ..utils.logging import setup_order_logging
from ..utils.retry import RetryPolicy, retry_with_policy

logger = setup_order_logging("order_messaging_service")

# Messages per batch request
QUEUE_BATCH_SIZE = 10


def chunk(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def queue_envelope(message: Any, delay_seconds: int = 0) -> Dict[str, Any]:
    """Queue message as it travels on the topic; the body is JSON text"""
    return {
        "messageId": uuid.uuid4().hex,
        "body": json.dumps(message, default=str),
        "availableAt": time.time() + delay_seconds,
    }


class QueueService:
    def __init__(
        self, producer: MessageProducer, retry_policy: Optional[RetryPolicy] = None
    ):
        self.producer = producer
        self.retry_policy = retry_policy or RetryPolicy()

    async def send_message(
        self, queue_name: str, message: Any, delay_seconds: int = 0
    ) -> None:
        logger.info("Sending message to queue", extra={"queue_name": queue_name})
        envelope = queue_envelope(message, delay_seconds)

        try:
            await retry_with_policy(
                lambda: self.producer.send(queue_name, envelope, key=envelope["messageId"]),
                self.retry_policy,
                logger,
            )
        except Exception as e:
            logger.error(
                "Failed to send message",
                extra={"queue_name": queue_name, "error": str(e)},
            )
            raise

        logger.info("Message sent successfully", extra={"queue_name": queue_name})

    async def send_batch(self, queue_name: str, messages: Sequence[Any]) -> None:
        logger.info(
            "Sending batch of messages",
            extra={"queue_name": queue_name, "count": len(messages)},
        )

        try:
            for batch in chunk(list(messages), QUEUE_BATCH_SIZE):
                envelopes = [queue_envelope(message) for message in batch]
                delivered: Set[int] = set()
                await retry_with_policy(
                    lambda: self._send_envelopes(queue_name, envelopes, delivered),
                    self.retry_policy,
                    logger,
                )
        except Exception as e:
            logger.error(
                "Failed to send batch messages",
                extra={"queue_name": queue_name, "error": str(e)},
            )
            raise

        logger.info("Batch messages sent successfully", extra={"count": len(messages)})

    async def _send_envelopes(
        self,
        queue_name: str,
        envelopes: Sequence[Dict[str, Any]],
        delivered: Set[int],
    ) -> None:
        """Send the envelopes not yet in ``delivered``, recording each success"""
        failed = []
        for index, envelope in enumerate(envelopes):
            if index in delivered:
                continue
            try:
                await self.producer.send(queue_name, envelope, key=envelope["messageId"])
                delivered.add(index)
            except Exception as e:
                failed.append({"id": str(index), "error": str(e)})
        if failed:
            raise MessageDeliveryError(f"Failed to send messages: {json.dumps(failed)}")


class NotificationService:
    def __init__(
        self, producer: MessageProducer, retry_policy: Optional[RetryPolicy] = None
    ):
        self.producer = producer
        self.retry_policy = retry_policy or RetryPolicy()

    async def publish(
        self, topic: str, message: str, subject: Optional[str] = None
    ) -> None:
        logger.info("Publishing notification", extra={"topic": topic})
        notification = {"message": message, "subject": subject}

        try:
            await retry_with_policy(
                lambda: self.producer.send(topic, notification),
                self.retry_policy,
                logger,
            )
        except Exception as e:
            logger.error(
                "Failed to publish notification",
                extra={"topic": topic, "error": str(e)},
            )
            raise

        logger.info("Notification published successfully", extra={"topic": topic})

    async def publish_structured(
        self, topic: str, message: Any, subject: Optional[str] = None
    ) -> None:
        await self.publish(topic, json.dumps(message, default=str), subject)
