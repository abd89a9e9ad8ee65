from fastapi import APIRouter, Request, Response, status

from ...core.exceptions import ErrorCode, OrderNotFoundError
from ...middleware.chain import RequestContext, with_middleware
from ...middleware.error import ErrorBoundaryMiddleware
from ...middleware.logging import RequestLoggingMiddleware
from ...middleware.security import CorsHeadersMiddleware, RequestValidationMiddleware
from ...schemas.order import (
    CreateOrderRequest,
    DeleteOrderBody,
    QueryOrdersParams,
    UpdateOrderBody,
    UpdateOrderRequest,
)
from ...schemas.response import create_error_response, create_response
from ...utils.logging import setup_order_logging
from ..deps import RequestContextDep, get_order_service

logger = setup_order_logging("order_service_api")

router = APIRouter(prefix="/orders")


def _respond(
    request: Request, context: RequestContext, status_code: int, data=None
) -> Response:
    return create_response(
        status_code,
        data,
        request_id=context.request_id,
        version=request.app.state.settings.RESPONSE_VERSION,
    )


def _path_order_id(request: Request) -> str:
    return str(request.path_params.get("order_id") or "").strip()


def _order_id_required() -> Response:
    return create_error_response(
        status.HTTP_400_BAD_REQUEST, "Order ID is required", ErrorCode.VALIDATION_ERROR
    )


def _order_not_found() -> Response:
    return create_error_response(
        status.HTTP_404_NOT_FOUND, "Order not found", ErrorCode.NOT_FOUND
    )


# =====================================================
# HANDLERS
# =====================================================


async def create_order_handler(request: Request, context: RequestContext) -> Response:
    order = await get_order_service(request).create_order(request.state.validated_body)
    logger.info(
        "Order created successfully",
        extra={"request_id": context.request_id, "order_id": order.order_id},
    )
    return _respond(request, context, status.HTTP_201_CREATED, order)


async def get_order_handler(request: Request, context: RequestContext) -> Response:
    order_id = _path_order_id(request)
    if not order_id:
        return _order_id_required()

    order = await get_order_service(request).get_order(order_id)
    if order is None:
        return _order_not_found()

    logger.info(
        "Order retrieved successfully",
        extra={"request_id": context.request_id, "order_id": order_id},
    )
    return _respond(request, context, status.HTTP_200_OK, order)


async def list_orders_handler(request: Request, context: RequestContext) -> Response:
    query = dict(request.query_params)
    query.setdefault("limit", request.app.state.settings.DEFAULT_PAGE_LIMIT)
    params = QueryOrdersParams.model_validate(query)

    page = await get_order_service(request).list_orders(
        customer_id=params.customer_id,
        limit=params.limit,
        continuation_token=params.next_token,
    )

    logger.info(
        "Orders retrieved successfully",
        extra={"request_id": context.request_id, "count": len(page.orders)},
    )
    return _respond(request, context, status.HTTP_200_OK, page.to_response())


async def update_order_handler(request: Request, context: RequestContext) -> Response:
    order_id = _path_order_id(request)
    if not order_id:
        return _order_id_required()

    body: UpdateOrderBody = request.state.validated_body
    update = UpdateOrderRequest.model_validate(
        {**body.model_dump(exclude_unset=True), "order_id": order_id}
    )

    try:
        order = await get_order_service(request).update_order(update)
    except OrderNotFoundError:
        return _order_not_found()

    logger.info(
        "Order updated successfully",
        extra={"request_id": context.request_id, "order_id": order_id},
    )
    return _respond(request, context, status.HTTP_200_OK, order)


async def delete_order_handler(request: Request, context: RequestContext) -> Response:
    order_id = _path_order_id(request)
    if not order_id:
        return _order_id_required()

    body: DeleteOrderBody = request.state.validated_body
    try:
        await get_order_service(request).delete_order(order_id, body.reason)
    except OrderNotFoundError:
        return _order_not_found()

    logger.info(
        "Order deleted successfully",
        extra={"request_id": context.request_id, "order_id": order_id},
    )
    return _respond(request, context, status.HTTP_204_NO_CONTENT)


# =====================================================
# PIPELINES
# =====================================================


def _pipeline(handler, *stages):
    """error boundary -> request logging -> CORS -> (validation) -> handler"""
    return with_middleware(
        handler,
        ErrorBoundaryMiddleware(),
        RequestLoggingMiddleware(),
        CorsHeadersMiddleware(),
        *stages,
    )


create_order_pipeline = _pipeline(
    create_order_handler, RequestValidationMiddleware(CreateOrderRequest)
)
get_order_pipeline = _pipeline(get_order_handler)
list_orders_pipeline = _pipeline(list_orders_handler)
update_order_pipeline = _pipeline(
    update_order_handler, RequestValidationMiddleware(UpdateOrderBody)
)
delete_order_pipeline = _pipeline(
    delete_order_handler, RequestValidationMiddleware(DeleteOrderBody)
)


# =====================================================
# ROUTES
# =====================================================


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: Request, context: RequestContext = RequestContextDep
) -> Response:
    """Create a new order"""
    return await create_order_pipeline(request, context)


@router.get("", status_code=status.HTTP_200_OK)
async def list_orders(
    request: Request, context: RequestContext = RequestContextDep
) -> Response:
    """List orders, optionally for one customer, one page at a time"""
    return await list_orders_pipeline(request, context)


@router.get("/{order_id}", status_code=status.HTTP_200_OK)
async def get_order(
    request: Request, order_id: str, context: RequestContext = RequestContextDep
) -> Response:
    """Get order details by ID"""
    return await get_order_pipeline(request, context)


@router.put("/{order_id}", status_code=status.HTTP_200_OK)
async def update_order(
    request: Request, order_id: str, context: RequestContext = RequestContextDep
) -> Response:
    """Apply a partial update to an order"""
    return await update_order_pipeline(request, context)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    request: Request, order_id: str, context: RequestContext = RequestContextDep
) -> Response:
    """Delete an order"""
    return await delete_order_pipeline(request, context)
