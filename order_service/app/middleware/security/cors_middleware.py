"""
CORS header overlay for Order Service responses.
"""

from typing import Dict, Mapping, Optional

from fastapi import Request, Response

from ...core.setting import OrderSettings, get_settings
from ..chain import CallNext, Middleware, RequestContext


def cors_headers(settings: Optional[OrderSettings] = None) -> Dict[str, str]:
    """The fixed CORS header set attached to every API response"""
    settings = settings or get_settings()
    origins = settings.CORS_ORIGINS or ["*"]
    return {
        "Access-Control-Allow-Origin": "*" if "*" in origins else origins[0],
        "Access-Control-Allow-Headers": ",".join(settings.CORS_HEADERS),
        "Access-Control-Allow-Methods": ",".join(settings.CORS_METHODS),
    }


def request_settings(request: Request) -> OrderSettings:
    return getattr(request.app.state, "settings", None) or get_settings()


class CorsHeadersMiddleware(Middleware):
    """Overlay the CORS headers on whatever the inner chain returned"""

    def __init__(self, headers: Optional[Mapping[str, str]] = None):
        self.headers = dict(headers) if headers is not None else None

    async def dispatch(
        self, request: Request, context: RequestContext, call_next: CallNext
    ) -> Response:
        response = await call_next()
        headers = self.headers or cors_headers(request_settings(request))
        for name, value in headers.items():
            response.headers[name] = value
        return response
