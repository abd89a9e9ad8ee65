"""
FastAPI dependency injection for Order Service

Process-wide collaborators are built once by ``main.create_app`` and kept on
``app.state``; the helpers here hand them to endpoints and build the
per-request ``OrderService`` from them.
"""

from fastapi import Depends, Request

from ..core.database import OrderServiceDatabaseManager
from ..core.setting import OrderSettings
from ..events.base import MessageProducer
from ..middleware.chain import RequestContext
from ..services.order_service import OrderService

# =====================================================
# APPLICATION STATE
# =====================================================


def get_app_settings(request: Request) -> OrderSettings:
    return request.app.state.settings


def get_database_manager(request: Request) -> OrderServiceDatabaseManager:
    return request.app.state.database_manager


def get_message_producer(request: Request) -> MessageProducer:
    return request.app.state.message_producer


# =====================================================
# SERVICE DEPENDENCIES
# =====================================================


def get_order_service(request: Request) -> OrderService:
    """Provide OrderService wired with the shared repository and publisher"""
    state = request.app.state
    return OrderService(
        repository=state.order_repository,
        event_publisher=state.event_publisher,
        customer_index_name=state.settings.CUSTOMER_INDEX_NAME,
    )


# =====================================================
# REQUEST CONTEXT
# =====================================================


def get_request_context(request: Request) -> RequestContext:
    context = getattr(request.state, "context", None)
    if context is None:
        context = RequestContext.from_request(request)
        request.state.context = context
    return context


# =====================================================
# COMMON DEPENDENCY ALIASES
# =====================================================

SettingsDep = Depends(get_app_settings)
DatabaseManagerDep = Depends(get_database_manager)
MessageProducerDep = Depends(get_message_producer)
RequestContextDep = Depends(get_request_context)
