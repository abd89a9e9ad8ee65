"""
Order Service configuration
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

ORDER_SERVICE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = ORDER_SERVICE_DIR / ".env"


class OrderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Order Management Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "order-service"
    API_PREFIX: str = ""
    RESPONSE_VERSION: str = "1.0"

    # Document store
    ORDER_DATABASE_URL: str = "sqlite+aiosqlite:///./orders.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    ORDERS_TABLE_NAME: str = "Orders"
    CUSTOMER_INDEX_NAME: str = "CustomerIdIndex"

    # Kafka backed event bus, work queue and notifications
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_GROUP_ID: str = "order-service"
    EVENT_BUS_NAME: str = "order-events"
    EVENT_SOURCE: str = "order-service"
    ORDER_QUEUE_NAME: str = "order-work-queue"
    NOTIFICATIONS_TOPIC: str = ""
    EVENT_PUBLISH_GRACEFUL_DEGRADATION: bool = False

    # Retry/backoff applied to every store and transport call
    RETRY_MAX_RETRIES: int = 3
    RETRY_INITIAL_DELAY_MS: int = 100
    RETRY_MAX_DELAY_MS: int = 10000
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # CORS headers overlaid on every API response
    CORS_ORIGINS: List[str] = ["*"]
    CORS_METHODS: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    CORS_HEADERS: List[str] = [
        "Content-Type",
        "Authorization",
        "X-Api-Key",
        "X-Request-ID",
        "X-Correlation-ID",
    ]

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 20


@lru_cache
def get_settings() -> OrderSettings:
    """Get settings singleton instance"""
    return OrderSettings()
