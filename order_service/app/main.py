import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI

from .api.v1.health import router as health_router
from .api.v1.orders import router as orders_router
from .core.database import OrderServiceDatabaseManager
from .core.setting import OrderSettings, get_settings
from .events.base import MessageProducer
from .events.base.kafka_client import KafkaMessageProducer
from .events.bus import EventBus
from .events.producers import EventPublisher
from .middleware.error import setup_order_error_handling
from .repository.order_repository import OrderRepository
from .utils.logging import setup_order_logging
from .utils.retry import RetryPolicy


def _file_logging_enabled(settings: OrderSettings) -> bool:
    return settings.ENVIRONMENT.lower() in ["production", "staging"]


# Lifespan context manager for startup and shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: OrderSettings = app.state.settings
    logger = setup_order_logging("order_service")
    startup_start = time.time()

    try:
        logger.info(
            "Starting order service initialization",
            extra={
                "environment": settings.ENVIRONMENT,
                "debug_mode": settings.DEBUG,
                "service_version": settings.APP_VERSION,
            },
        )

        db_start = time.time()
        await app.state.database_manager.create_tables()
        db_duration = int((time.time() - db_start) * 1000)
        logger.info(
            "Document store initialization completed",
            extra={"duration_ms": db_duration},
        )

        producer_start = time.time()
        await app.state.message_producer.start()
        producer_duration = int((time.time() - producer_start) * 1000)
        logger.info(
            "Message producer started", extra={"duration_ms": producer_duration}
        )

        logger.info(
            "Order service started successfully",
            extra={
                "total_startup_duration_ms": int((time.time() - startup_start) * 1000),
                "database_init_ms": db_duration,
                "producer_init_ms": producer_duration,
            },
        )

    except Exception as e:
        logger.error(
            "Failed to start order service",
            exc_info=True,
            extra={
                "startup_duration_ms": int((time.time() - startup_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise

    yield

    shutdown_start = time.time()
    try:
        logger.info("Starting order service shutdown")

        await app.state.message_producer.stop()
        await app.state.database_manager.close()

        logger.info(
            "Order service shutdown completed",
            extra={"shutdown_duration_ms": int((time.time() - shutdown_start) * 1000)},
        )

    except Exception as e:
        logger.error(
            "Error during order service shutdown",
            exc_info=True,
            extra={
                "shutdown_duration_ms": int((time.time() - shutdown_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise


def create_app(
    settings: Optional[OrderSettings] = None,
    message_producer: Optional[MessageProducer] = None,
) -> FastAPI:
    """Build the application and the collaborators every request shares"""
    settings = settings or get_settings()

    logger = setup_order_logging(
        "order_service",
        log_level=settings.LOG_LEVEL,
        enable_file_logging=_file_logging_enabled(settings),
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    database_manager = OrderServiceDatabaseManager(
        settings.ORDER_DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )
    if message_producer is None:
        message_producer = KafkaMessageProducer(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=f"{settings.SERVICE_NAME}-producer",
            max_retries=5,
            enable_graceful_degradation=settings.EVENT_PUBLISH_GRACEFUL_DEGRADATION,
        )

    retry_policy = RetryPolicy.from_settings(settings)
    event_bus = EventBus(message_producer)

    app.state.settings = settings
    app.state.database_manager = database_manager
    app.state.message_producer = message_producer
    app.state.event_bus = event_bus
    app.state.event_publisher = EventPublisher(
        event_bus,
        bus_name=settings.EVENT_BUS_NAME,
        source=settings.EVENT_SOURCE,
        retry_policy=retry_policy,
    )
    app.state.order_repository = OrderRepository(
        database_manager.async_session_maker,
        table_name=settings.ORDERS_TABLE_NAME,
        customer_index_name=settings.CUSTOMER_INDEX_NAME,
        retry_policy=retry_policy,
    )

    setup_order_error_handling(app)

    routers_info: list[dict[str, Any]] = []

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": "", "tags": ["Health"]})

    app.include_router(
        orders_router, prefix=settings.API_PREFIX, tags=["Order Management"]
    )
    routers_info.append(
        {
            "router": "orders",
            "prefix": settings.API_PREFIX,
            "tags": ["Order Management"],
        }
    )

    logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )

    return app


app = create_app()
