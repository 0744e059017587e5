"""FastAPI application wiring."""

from __future__ import annotations

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from claude_relay import config
from claude_relay.errors.anthropic_error import build_anthropic_error
from claude_relay.handlers.count_tokens import router as count_tokens_router
from claude_relay.handlers.health import router as health_router
from claude_relay.handlers.messages import router as messages_router
from claude_relay.middleware.observability import ObservabilityMiddleware
from claude_relay.observability.logging import configure_logging

NOT_FOUND_MESSAGE = "Not Found. Only /v1/messages endpoint is supported"

logger = structlog.get_logger(__name__)

app = FastAPI()
configure_logging()
config.get_model_redirections()
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Correlation-ID")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-api-key", "Anthropic-Version"],
)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    error_payload = build_anthropic_error(
        400, "invalid_request_error", f"Invalid request: {exc.errors()}"
    )
    return JSONResponse(status_code=400, content=error_payload)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = NOT_FOUND_MESSAGE if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=build_anthropic_error(exc.status_code, None, message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        endpoint=str(request.url.path),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content=build_anthropic_error(500, "api_error", "Internal server error"),
    )


app.include_router(health_router)
app.include_router(count_tokens_router)
app.include_router(messages_router)
