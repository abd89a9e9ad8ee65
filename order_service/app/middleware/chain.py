"""
Request pipeline for the order endpoints.

A pipeline is an ordered list of middleware stages folded around a handler.
Each stage receives the request, the per-request context and ``call_next``,
which runs the rest of the chain and returns its response.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from fastapi import Request, Response

CallNext = Callable[[], Awaitable[Response]]


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    correlation_id: str

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        correlation_id = request.headers.get("X-Correlation-ID") or request_id
        return cls(request_id=request_id, correlation_id=correlation_id)


Handler = Callable[[Request, RequestContext], Awaitable[Response]]


class Middleware(ABC):
    @abstractmethod
    async def dispatch(
        self, request: Request, context: RequestContext, call_next: CallNext
    ) -> Response:
        pass


Pipeline = Callable[[Request, RequestContext, CallNext], Awaitable[Response]]


def compose_middleware(*middlewares: Middleware) -> Pipeline:
    """Fold ``middlewares`` left to right; the first listed runs outermost"""
    stages: Sequence[Middleware] = tuple(middlewares)

    async def run(request: Request, context: RequestContext, handler: CallNext) -> Response:
        async def call(index: int) -> Response:
            if index < len(stages):
                return await stages[index].dispatch(
                    request, context, lambda: call(index + 1)
                )
            return await handler()

        return await call(0)

    return run


def with_middleware(handler: Handler, *middlewares: Middleware) -> Handler:
    composed = compose_middleware(*middlewares)

    async def wrapped(request: Request, context: RequestContext) -> Response:
        return await composed(request, context, lambda: handler(request, context))

    return wrapped
