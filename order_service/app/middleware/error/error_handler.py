"""
Error handling for Order Service.

``ErrorBoundaryMiddleware`` is the outermost stage of every endpoint pipeline
and turns any exception into the error envelope. The FastAPI exception
handlers registered by ``setup_order_error_handling`` use the same mapping for
errors raised outside a pipeline (unknown routes, framework validation).
"""

from typing import Any, Dict, List, Tuple

from aiokafka.errors import KafkaError  # type: ignore
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.exceptions import (
    ConditionalCheckFailedError,
    ErrorCode,
    EventPublishError,
    InvalidContinuationTokenError,
    InvalidRequestError,
    MessageDeliveryError,
)
from ...schemas.response import create_error_response
from ...utils.logging import setup_order_logging
from ..chain import CallNext, Middleware, RequestContext
from ..security.cors_middleware import cors_headers, request_settings

logger = setup_order_logging("order_service_error_handler")

EXTERNAL_SERVICE_ERRORS = (
    SQLAlchemyError,
    KafkaError,
    EventPublishError,
    MessageDeliveryError,
)

_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
}


def validation_details(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


def map_exception(exc: BaseException) -> Tuple[int, Any, ErrorCode]:
    """Status code, client-facing error body and code for ``exc``"""
    if isinstance(exc, (ValidationError, RequestValidationError)):
        return (
            status.HTTP_400_BAD_REQUEST,
            {"message": "Validation error", "details": validation_details(exc.errors())},
            ErrorCode.VALIDATION_ERROR,
        )
    if isinstance(exc, InvalidRequestError):
        return (
            status.HTTP_400_BAD_REQUEST,
            {"message": exc.message, "details": exc.details},
            ErrorCode.VALIDATION_ERROR,
        )
    if isinstance(exc, InvalidContinuationTokenError):
        return (
            status.HTTP_400_BAD_REQUEST,
            {"message": str(exc)},
            ErrorCode.VALIDATION_ERROR,
        )
    if isinstance(exc, ConditionalCheckFailedError):
        return status.HTTP_409_CONFLICT, {"message": str(exc)}, ErrorCode.CONFLICT
    if isinstance(exc, EXTERNAL_SERVICE_ERRORS):
        return (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"message": "External service error"},
            ErrorCode.EXTERNAL_SERVICE_ERROR,
        )
    if isinstance(exc, Exception):
        return (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"message": str(exc) or "Internal server error"},
            ErrorCode.INTERNAL_ERROR,
        )
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"message": "Internal server error"},
        ErrorCode.INTERNAL_ERROR,
    )


class ErrorBoundaryMiddleware(Middleware):
    """Never lets an exception escape; every failure becomes an error envelope"""

    async def dispatch(
        self, request: Request, context: RequestContext, call_next: CallNext
    ) -> Response:
        try:
            return await call_next()
        except Exception as exc:
            status_code, error, code = map_exception(exc)
            log_data = {
                "request_id": context.request_id,
                "correlation_id": context.correlation_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "error_code": code.value,
                "exception_type": type(exc).__name__,
            }
            if status_code >= 500:
                logger.error("Unhandled error in request pipeline", exc_info=True, extra=log_data)
            else:
                logger.warning(f"Client error: {code.value}", extra=log_data)

            return create_error_response(
                status_code, error, code, cors_headers(request_settings(request))
            )


class OrderServiceErrorHandler:
    """FastAPI exception handlers producing the error envelope"""

    @staticmethod
    def setup_error_handlers(app: FastAPI) -> None:
        @app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(
            request: Request, exc: StarletteHTTPException
        ) -> JSONResponse:
            if exc.status_code in _STATUS_CODES:
                code = _STATUS_CODES[exc.status_code]
            elif exc.status_code < 500:
                code = ErrorCode.VALIDATION_ERROR
            else:
                code = ErrorCode.INTERNAL_ERROR
            return OrderServiceErrorHandler._create_error_response(
                request, exc.status_code, str(exc.detail), code
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ) -> JSONResponse:
            status_code, error, code = map_exception(exc)
            return OrderServiceErrorHandler._create_error_response(
                request, status_code, error, code
            )

        @app.exception_handler(Exception)
        async def unhandled_exception_handler(
            request: Request, exc: Exception
        ) -> JSONResponse:
            status_code, error, code = map_exception(exc)
            logger.error(
                "Unhandled exception occurred",
                exc_info=exc,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "exception_type": type(exc).__name__,
                },
            )
            return OrderServiceErrorHandler._create_error_response(
                request, status_code, error, code
            )

    @staticmethod
    def _create_error_response(
        request: Request, status_code: int, error: Any, code: ErrorCode
    ) -> JSONResponse:
        if status_code < 500:
            logger.warning(
                f"Client error: {code.value}",
                extra={
                    "status_code": status_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
        return create_error_response(
            status_code, error, code, cors_headers(request_settings(request))
        )


def setup_order_error_handling(app: FastAPI) -> None:
    """Register the Order Service exception handlers on ``app``"""
    OrderServiceErrorHandler.setup_error_handlers(app)
    logger.info(
        "Order Service error handling configured",
        extra={"event_type": "error_handler_setup"},
    )
