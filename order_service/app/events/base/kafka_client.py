import asyncio
import json
from typing import Any, Awaitable, Callable, List, Optional, Set

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer  # type: ignore
from aiokafka.admin import AIOKafkaAdminClient, NewTopic  # type: ignore
from aiokafka.errors import KafkaConnectionError, KafkaError  # type: ignore

from ...utils.logging import setup_order_logging
from . import MessageProducer

logger = setup_order_logging("order_service_kafka")


class QueueRecord:
    """One consumed work-queue message"""

    __slots__ = ("message_id", "body")

    def __init__(self, message_id: str, body: Any):
        self.message_id = message_id
        self.body = body


class KafkaMessageProducer(MessageProducer):
    """
    Shared Kafka producer for the event bus, work queue and notifications,
    with connection retry logic
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        max_retries: int = 20,
        retry_delay: float = 2.0,
        enable_graceful_degradation: bool = False,
        reconnect_timeout: float = 10.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.enable_graceful_degradation = enable_graceful_degradation
        self.reconnect_timeout = reconnect_timeout
        self.producer: Optional[AIOKafkaProducer] = None
        self.is_connected = False
        self._known_topics: Set[str] = set()
        self._connection_lock = asyncio.Lock()

    async def ensure_topic_exists(self, topic_name: str) -> None:
        """Create a Kafka topic the first time it is written to."""
        if topic_name in self._known_topics:
            return

        admin_client = AIOKafkaAdminClient(bootstrap_servers=self.bootstrap_servers)
        await admin_client.start()  # type: ignore
        try:
            topics = await admin_client.list_topics()
            if topic_name not in topics:
                await admin_client.create_topics(
                    [NewTopic(name=topic_name, num_partitions=1, replication_factor=1)]
                )
                logger.info(
                    "Created Kafka topic",
                    extra={"topic_name": topic_name, "operation": "create_topic"},
                )
            self._known_topics.add(topic_name)
        except KafkaError as e:
            logger.warning(
                "Error ensuring Kafka topic exists",
                extra={
                    "topic_name": topic_name,
                    "error": str(e),
                    "operation": "ensure_topic_exists",
                },
            )
        finally:
            await admin_client.close()  # type: ignore

    async def start(
        self, timeout: float = 30.0, max_attempts: Optional[int] = None
    ) -> None:
        """Start Kafka producer with retry logic"""
        attempts = max_attempts or self.max_retries
        async with self._connection_lock:
            if self.producer and self.is_connected:
                return

            self.producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                client_id=self.client_id,
                value_serializer=lambda x: json.dumps(x, default=str).encode("utf-8"),  # type: ignore
                key_serializer=lambda x: x.encode("utf-8") if x else None,  # type: ignore
                retry_backoff_ms=1000,
                request_timeout_ms=30000,
            )

            for attempt in range(attempts):
                try:
                    logger.info(
                        "Attempting Kafka connection",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": attempts,
                            "operation": "kafka_connect",
                        },
                    )
                    await asyncio.wait_for(self.producer.start(), timeout=timeout)  # type: ignore

                    self.is_connected = True
                    logger.info("Successfully connected to Kafka")
                    return

                except (KafkaConnectionError, asyncio.TimeoutError) as e:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"Kafka connection attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay} seconds..."
                    )

                    if attempt < attempts - 1:
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"Failed to connect to Kafka after {attempts} attempts. "
                            f"Messages will be rejected until the producer reconnects"
                        )
                        self.is_connected = False

    async def stop(self) -> None:
        """Stop Kafka producer"""
        async with self._connection_lock:
            if self.producer:
                try:
                    await self.producer.stop()  # type: ignore
                    logger.info("Kafka producer stopped")
                except KafkaError as e:
                    logger.warning(
                        "Error stopping Kafka producer",
                        extra={"error": str(e), "operation": "stop_producer"},
                    )
                finally:
                    self.producer = None
                    self.is_connected = False

    async def reconnect(self) -> None:
        """Make a single connection attempt after a failed or lost start"""
        logger.info(
            "Kafka producer not connected, attempting reconnect",
            extra={"operation": "kafka_reconnect"},
        )
        await self.start(timeout=self.reconnect_timeout, max_attempts=1)

    async def send(self, topic: str, value: Any, key: Optional[str] = None) -> None:
        if not self.is_connected or not self.producer:
            if self.enable_graceful_degradation:
                logger.warning(
                    f"Kafka not available, logging message instead: {topic}",
                    extra={"topic": topic, "payload": value},
                )
                return
            await self.reconnect()
            if not self.is_connected or not self.producer:
                raise KafkaConnectionError("Kafka producer not connected")

        await self.ensure_topic_exists(topic)

        try:
            await self.producer.send_and_wait(topic=topic, value=value, key=key)  # type: ignore
            logger.debug(
                "Sent message to Kafka topic",
                extra={"topic": topic, "key": key, "operation": "send"},
            )
        except KafkaError as e:
            if self.enable_graceful_degradation:
                logger.error(
                    f"Failed to send message to {topic}, logging instead: {e}",
                    extra={"topic": topic, "payload": value},
                )
                return
            logger.error(
                "Failed to send message to Kafka",
                extra={
                    "topic": topic,
                    "error": str(e),
                    "operation": "send_failed",
                },
            )
            raise

    async def health_check(self) -> bool:
        """Check if Kafka connection is healthy"""
        try:
            if not self.producer or not self.is_connected:
                return False

            metadata = await self.producer.client.fetch_all_metadata()  # type: ignore
            return len(metadata.brokers()) > 0  # type: ignore

        except Exception as e:
            logger.warning(
                "Kafka health check failed",
                extra={"error": str(e), "operation": "health_check"},
            )
            return False


class KafkaMessageConsumer:
    """Kafka consumer for one topic with connection retry logic"""

    def __init__(
        self,
        topic: str,
        bootstrap_servers: str,
        group_id: str,
        client_id: str,
        max_retries: int = 5,
        retry_delay: float = 2.0,
    ):
        self.topic = topic
        self.bootstrap_servers = bootstrap_servers
        self.group_id = group_id
        self.client_id = client_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.consumer: Optional[AIOKafkaConsumer] = None
        self.running = False

    async def start(self, timeout: float = 30.0) -> None:
        """Start the consumer with retry logic"""
        for attempt in range(self.max_retries):
            self.consumer = AIOKafkaConsumer(
                self.topic,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                client_id=f"{self.client_id}-{self.topic}",
                value_deserializer=lambda x: json.loads(x.decode("utf-8")),  # type: ignore
                enable_auto_commit=False,
                auto_offset_reset="earliest",
            )
            try:
                logger.info(
                    "Attempting Kafka consumer connection",
                    extra={
                        "topic": self.topic,
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "operation": "consumer_connect",
                    },
                )
                await asyncio.wait_for(self.consumer.start(), timeout=timeout)  # type: ignore
                self.running = True
                logger.info(
                    "Kafka consumer connected", extra={"topic": self.topic}
                )
                return

            except (KafkaConnectionError, asyncio.TimeoutError) as e:
                delay = self.retry_delay * (2**attempt)
                logger.warning(
                    f"Kafka consumer connection attempt {attempt + 1} failed: {e}. "
                    f"Retrying in {delay} seconds..."
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(delay)
                else:
                    raise KafkaConnectionError(
                        f"Could not connect to Kafka at {self.bootstrap_servers}"
                    ) from e

    async def stop(self) -> None:
        self.running = False
        if self.consumer:
            try:
                await self.consumer.stop()  # type: ignore
                logger.info("Stopped Kafka consumer", extra={"topic": self.topic})
            except KafkaError as e:
                logger.warning(
                    "Error stopping Kafka consumer",
                    extra={"topic": self.topic, "error": str(e)},
                )
            finally:
                self.consumer = None

    async def consume(self, handler: Callable[[Any], Awaitable[None]]) -> None:
        """Feed every message to ``handler``; failures are logged and skipped"""
        async for message in self.consumer:  # type: ignore
            if not self.running:
                break
            try:
                await handler(message.value)
            except Exception as e:
                logger.error(
                    "Error processing Kafka message",
                    exc_info=True,
                    extra={
                        "topic": self.topic,
                        "offset": message.offset,
                        "error": str(e),
                        "operation": "process_message_error",
                    },
                )
            await self.consumer.commit()  # type: ignore

    async def consume_batches(
        self,
        handler: Callable[[List[QueueRecord]], Awaitable[None]],
        timeout_ms: int = 1000,
        max_records: int = 10,
    ) -> None:
        """Feed polled batches to ``handler``; a batch commits only when it fully succeeds"""
        while self.running:
            batches = await self.consumer.getmany(  # type: ignore
                timeout_ms=timeout_ms, max_records=max_records
            )
            for partition, messages in batches.items():
                records = [
                    QueueRecord(
                        f"{partition.topic}-{partition.partition}-{message.offset}",
                        message.value,
                    )
                    for message in messages
                ]
                try:
                    await handler(records)
                except Exception as e:
                    logger.error(
                        "Error processing Kafka batch",
                        extra={
                            "topic": self.topic,
                            "partition": partition.partition,
                            "error": str(e),
                            "operation": "process_batch_error",
                        },
                    )
                    # Rewind so the failed batch is polled again
                    self.consumer.seek(partition, messages[0].offset)  # type: ignore
                    continue
                await self.consumer.commit(  # type: ignore
                    {partition: messages[-1].offset + 1}
                )
