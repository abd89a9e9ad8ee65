"""
HTTP request logging for Order Service endpoints.

Logs method, path and query parameters on the way in and status code and
duration on the way out, tagged with the request and correlation IDs.
"""

import time

from fastapi import Request, Response

from ...utils.logging import setup_order_logging
from ..chain import CallNext, Middleware, RequestContext

logger = setup_order_logging("order_service_request_logging")


class RequestLoggingMiddleware(Middleware):
    async def dispatch(
        self, request: Request, context: RequestContext, call_next: CallNext
    ) -> Response:
        logger.info(
            "Request received",
            extra={
                "request_id": context.request_id,
                "correlation_id": context.correlation_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
            },
        )

        start_time = time.perf_counter()
        response = await call_next()
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        else:
            log = logger.info

        log(
            "Request completed",
            extra={
                "request_id": context.request_id,
                "correlation_id": context.correlation_id,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
