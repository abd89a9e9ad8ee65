"""
Pytest configuration and fixtures for Order Service tests.
"""

import os
import uuid
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

# Set up test environment
os.environ["ENVIRONMENT"] = "test"

from order_service.app.core.database import OrderServiceDatabaseManager
from order_service.app.core.setting import OrderSettings
from order_service.app.events.base import MessageProducer
from order_service.app.events.bus import EventBus
from order_service.app.events.producers import EventPublisher
from order_service.app.main import create_app
from order_service.app.repository.order_repository import OrderRepository
from order_service.app.utils.retry import RetryPolicy


class FakeProducer(MessageProducer):
    """In-memory stand-in for the Kafka producer that records every send"""

    def __init__(self, fail_with: Optional[Exception] = None, healthy: bool = True):
        self.sent: List[Tuple[str, Any, Optional[str]]] = []
        self.fail_with = fail_with
        self.healthy = healthy
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def send(self, topic: str, value: Any, key: Optional[str] = None) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((topic, value, key))

    async def health_check(self) -> bool:
        return self.healthy

    def values_for(self, topic: str) -> List[Any]:
        return [value for sent_topic, value, _ in self.sent if sent_topic == topic]


@pytest.fixture
def test_settings() -> OrderSettings:
    """Settings pointing at an in-memory document store with fast retries."""
    return OrderSettings(
        ENVIRONMENT="test",
        ORDER_DATABASE_URL="sqlite+aiosqlite:///:memory:",
        RETRY_MAX_RETRIES=2,
        RETRY_INITIAL_DELAY_MS=1,
        RETRY_MAX_DELAY_MS=5,
    )


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=2, initial_delay_ms=1, max_delay_ms=5)


@pytest.fixture
def fake_producer() -> FakeProducer:
    return FakeProducer()


@pytest.fixture
async def database_manager(
    test_settings,
) -> AsyncGenerator[OrderServiceDatabaseManager, None]:
    """Fresh in-memory document store per test."""
    manager = OrderServiceDatabaseManager(test_settings.ORDER_DATABASE_URL)
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def order_repository(database_manager, fast_retry_policy) -> OrderRepository:
    return OrderRepository(
        database_manager.async_session_maker, retry_policy=fast_retry_policy
    )


@pytest.fixture
def event_publisher(fake_producer, test_settings, fast_retry_policy) -> EventPublisher:
    return EventPublisher(
        EventBus(fake_producer),
        bus_name=test_settings.EVENT_BUS_NAME,
        source=test_settings.EVENT_SOURCE,
        retry_policy=fast_retry_policy,
    )


@pytest.fixture
async def test_app(test_settings, fake_producer):
    """Application wired with the fake producer and an in-memory store."""
    app = create_app(test_settings, message_producer=fake_producer)
    # ASGITransport does not run the lifespan
    await app.state.database_manager.create_tables()
    yield app
    await app.state.database_manager.close()


@pytest.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def make_request(test_settings):
    """Factory for real Starlette requests bound to a bare app with settings."""
    app = FastAPI()
    app.state.settings = test_settings

    def factory(
        method: str = "GET",
        path: str = "/orders",
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        query_string: bytes = b"",
    ) -> Request:
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string,
            "headers": [
                (name.lower().encode(), value.encode())
                for name, value in (headers or {}).items()
            ],
            "app": app,
        }

        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return factory


@pytest.fixture
def create_order_payload() -> Dict[str, Any]:
    """Valid creation request body."""
    return {
        "customerId": "customer-123",
        "customerEmail": "test@example.com",
        "items": [
            {
                "productId": str(uuid.uuid4()),
                "name": "Product",
                "quantity": 2,
                "price": 29.99,
            }
        ],
        "shippingAddress": {
            "street": "123 Main St",
            "city": "Boston",
            "state": "MA",
            "zipCode": "02101",
        },
    }
