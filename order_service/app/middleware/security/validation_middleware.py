"""
Request body validation for Order Service endpoints.

The JSON body is parsed against a pydantic schema and the normalised model is
left on ``request.state.validated_body`` for the handler.
"""

import json
from typing import Any, Type

from fastapi import Request, Response
from pydantic import BaseModel, ValidationError

from ...core.exceptions import InvalidRequestError
from ...utils.logging import setup_order_logging
from ..chain import CallNext, Middleware, RequestContext

logger = setup_order_logging("order_service_validation")


async def read_json_body(request: Request) -> Any:
    """Parse the request body; an empty body reads as ``{}``"""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidRequestError(
            "Invalid JSON body",
            details=[{"field": "body", "message": str(e), "type": "json_invalid"}],
        ) from e


class RequestValidationMiddleware(Middleware):
    def __init__(self, schema: Type[BaseModel]):
        self.schema = schema

    async def dispatch(
        self, request: Request, context: RequestContext, call_next: CallNext
    ) -> Response:
        try:
            body = await read_json_body(request)
            request.state.validated_body = self.schema.model_validate(body)
        except (ValidationError, InvalidRequestError) as e:
            logger.warning(
                "Request validation failed",
                extra={
                    "request_id": context.request_id,
                    "schema": self.schema.__name__,
                    "error": str(e),
                },
            )
            raise

        logger.debug(
            "Request validation successful", extra={"request_id": context.request_id}
        )
        return await call_next()
