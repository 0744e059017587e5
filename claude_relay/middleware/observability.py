"""Observability middleware for request context binding."""

from __future__ import annotations

import time

import structlog
from asgi_correlation_id import correlation_id
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

from claude_relay.observability.logging import logging_enabled

logger = structlog.get_logger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        clear_contextvars()
        request.state.start_time = time.perf_counter()

        request_correlation_id = correlation_id.get()
        request.state.correlation_id = request_correlation_id
        if request_correlation_id:
            bind_contextvars(correlation_id=request_correlation_id)
        bind_contextvars(method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
            if logging_enabled():
                logger.debug(
                    "http_request",
                    status_code=response.status_code,
                    duration_ms=int(
                        (time.perf_counter() - request.state.start_time) * 1000
                    ),
                )
            return response
        finally:
            clear_contextvars()
