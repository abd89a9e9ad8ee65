"""
Health API endpoints
"""

import time
from typing import Any, Dict

from fastapi import APIRouter

from ...core.database import OrderServiceDatabaseManager
from ...core.setting import OrderSettings
from ...events.base import MessageProducer
from ...utils.logging import setup_order_logging
from ..deps import DatabaseManagerDep, MessageProducerDep, SettingsDep

logger = setup_order_logging("order_service_health")

router = APIRouter()

_started_at = time.time()


async def _timed(check) -> Dict[str, Any]:
    start = time.perf_counter()
    try:
        healthy = await check()
        result: Dict[str, Any] = {"status": "healthy" if healthy else "unhealthy"}
    except Exception as e:
        result = {"status": "unhealthy", "error": str(e)}
    result["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
    return result


@router.get("/health")
async def health_check(
    settings: OrderSettings = SettingsDep,
    database_manager: OrderServiceDatabaseManager = DatabaseManagerDep,
    message_producer: MessageProducer = MessageProducerDep,
) -> Dict[str, Any]:
    """Report document store reachability and event bus connectivity"""
    checks = {
        "database": await _timed(database_manager.health_check),
        "event_bus": await _timed(message_producer.health_check),
    }

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif checks["event_bus"]["status"] != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    logger.info(f"Health check completed: {overall}")
    return {
        "status": overall,
        "service": settings.SERVICE_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time(),
        "uptime_seconds": round(time.time() - _started_at, 2),
        "checks": checks,
    }
