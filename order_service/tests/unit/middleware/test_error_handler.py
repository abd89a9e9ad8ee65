"""
Unit tests for Order Service Error Handler.
"""

import json

import pytest
from aiokafka.errors import KafkaConnectionError  # type: ignore
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from order_service.app.core.exceptions import (
    ConcurrentModificationError,
    ErrorCode,
    EventPublishError,
    InvalidContinuationTokenError,
    InvalidRequestError,
)
from order_service.app.middleware.chain import RequestContext
from order_service.app.middleware.error.error_handler import (
    ErrorBoundaryMiddleware,
    OrderServiceErrorHandler,
    map_exception,
    setup_order_error_handling,
)
from order_service.app.schemas.order import CreateOrderRequest


def validation_error() -> ValidationError:
    try:
        CreateOrderRequest.model_validate({"customerEmail": "invalid-email"})
    except ValidationError as e:
        return e
    raise AssertionError("expected a validation error")


class TestMapException:
    def test_validation_error_lists_violations(self):
        status_code, error, code = map_exception(validation_error())

        assert status_code == 400
        assert code == ErrorCode.VALIDATION_ERROR
        assert error["message"] == "Validation error"
        fields = {detail["field"] for detail in error["details"]}
        assert {"customerId", "customerEmail", "items", "shippingAddress"} <= fields

    def test_invalid_request(self):
        exc = InvalidRequestError("Invalid JSON body", [{"field": "body"}])

        assert map_exception(exc) == (
            400,
            {"message": "Invalid JSON body", "details": [{"field": "body"}]},
            ErrorCode.VALIDATION_ERROR,
        )

    def test_bad_continuation_token(self):
        status_code, _, code = map_exception(InvalidContinuationTokenError("bad"))

        assert status_code == 400
        assert code == ErrorCode.VALIDATION_ERROR

    def test_version_conflict(self):
        status_code, _, code = map_exception(ConcurrentModificationError("o-1", 1, 2))

        assert status_code == 409
        assert code == ErrorCode.CONFLICT

    @pytest.mark.parametrize(
        "exc",
        [
            KafkaConnectionError("down"),
            EventPublishError("1 of 1 failed"),
            OperationalError("SELECT 1", {}, Exception("locked")),
        ],
    )
    def test_external_errors_hide_details(self, exc):
        assert map_exception(exc) == (
            500,
            {"message": "External service error"},
            ErrorCode.EXTERNAL_SERVICE_ERROR,
        )

    def test_generic_error_uses_its_message(self):
        assert map_exception(RuntimeError("kaput")) == (
            500,
            {"message": "kaput"},
            ErrorCode.INTERNAL_ERROR,
        )

    def test_empty_message_falls_back(self):
        _, error, _ = map_exception(RuntimeError())

        assert error == {"message": "Internal server error"}

    def test_non_exception_values(self):
        _, error, code = map_exception(KeyboardInterrupt())

        assert error == {"message": "Internal server error"}
        assert code == ErrorCode.INTERNAL_ERROR


class TestErrorBoundaryMiddleware:
    @pytest.mark.asyncio
    async def test_passes_successful_responses_through(self, make_request):
        request = make_request()
        response = Response("OK")

        async def call_next():
            return response

        result = await ErrorBoundaryMiddleware().dispatch(
            request, RequestContext("req-1", "req-1"), call_next
        )

        assert result is response

    @pytest.mark.asyncio
    async def test_exceptions_become_error_envelopes(self, make_request):
        async def call_next():
            raise RuntimeError("kaput")

        response = await ErrorBoundaryMiddleware().dispatch(
            make_request(), RequestContext("req-1", "req-1"), call_next
        )

        assert response.status_code == 500
        assert json.loads(response.body) == {
            "success": False,
            "error": {"message": "kaput"},
            "code": "INTERNAL_ERROR",
        }
        assert response.headers["Access-Control-Allow-Origin"] == "*"


class TestOrderServiceErrorHandler:
    """FastAPI exception handlers."""

    @pytest.fixture
    def app(self, test_settings):
        app = FastAPI()
        app.state.settings = test_settings
        OrderServiceErrorHandler.setup_error_handlers(app)
        return app

    def test_setup_error_handlers(self, app):
        assert StarletteHTTPException in app.exception_handlers
        assert RequestValidationError in app.exception_handlers
        assert Exception in app.exception_handlers

    def test_setup_order_error_handling(self):
        app = FastAPI()

        setup_order_error_handling(app)

        assert StarletteHTTPException in app.exception_handlers

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code, code",
        [
            (404, "NOT_FOUND"),
            (405, "VALIDATION_ERROR"),
            (403, "FORBIDDEN"),
            (503, "INTERNAL_ERROR"),
        ],
    )
    async def test_http_exception_handler(self, app, make_request, status_code, code):
        handler = app.exception_handlers[StarletteHTTPException]

        response = await handler(
            make_request(), StarletteHTTPException(status_code=status_code, detail="x")
        )

        assert response.status_code == status_code
        assert json.loads(response.body) == {
            "success": False,
            "error": "x",
            "code": code,
        }

    @pytest.mark.asyncio
    async def test_request_validation_error_handler(self, app, make_request):
        handler = app.exception_handlers[RequestValidationError]
        exc = RequestValidationError(
            [{"loc": ("query", "limit"), "msg": "too big", "type": "less_than_equal"}]
        )

        response = await handler(make_request(), exc)

        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"] == [
            {"field": "query.limit", "message": "too big", "type": "less_than_equal"}
        ]

    @pytest.mark.asyncio
    async def test_unhandled_exception_handler(self, app, make_request):
        handler = app.exception_handlers[Exception]

        response = await handler(make_request(), ValueError("Unexpected"))

        assert response.status_code == 500
        assert json.loads(response.body)["code"] == "INTERNAL_ERROR"
