"""Shared helpers for /v1/messages handlers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from asgi_correlation_id import correlation_id
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from claude_relay import config
from claude_relay.errors.anthropic_error import build_anthropic_error
from claude_relay.mapping.model_path import resolve_target
from claude_relay.observability.logging import logging_enabled
from claude_relay.observability.redaction import (
    redact_generic_payload,
    redact_messages_request,
    summarize_messages_request,
)
from claude_relay.schema.anthropic import MessagesRequest
from claude_relay.transport.upstream_common import OpenAIUpstreamError, UpstreamTarget

MISSING_TARGET_MESSAGE = (
    "Could not determine target base URL or model name. Ensure the URL format "
    "is correct or fallback environment variables are set."
)


class TargetResolutionError(ValueError):
    """Raised when the request path or configuration does not name an upstream."""


@dataclass(frozen=True)
class MessageRequestContext:
    model_requested: Optional[str]
    model_upstream: str
    correlation_id: Optional[str]
    payload_summary: Optional[Dict[str, Any]]

    @property
    def model_echo(self) -> str:
        return self.model_requested or self.model_upstream


def normalize_openai_payload(payload: Any) -> Dict[str, Any]:
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_none=True)
    return payload


def get_correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, "correlation_id", None) or correlation_id.get()


def duration_ms(request: Request) -> Optional[int]:
    start_time = getattr(request.state, "start_time", None)
    if start_time is None:
        return None
    return int((time.perf_counter() - start_time) * 1000)


def resolve_upstream_target(http_request: Request) -> UpstreamTarget:
    """Build the upstream target from the request path, headers and config."""
    base_url = config.get_openai_base_url()
    model_name = resolve_target(http_request.url.path)
    if not base_url or not model_name:
        raise TargetResolutionError(MISSING_TARGET_MESSAGE)
    api_key = config.resolve_api_key(
        http_request.headers.get("x-api-key"),
        http_request.headers.get("authorization"),
    )
    return UpstreamTarget(
        model=config.redirect_model(model_name),
        base_url=base_url,
        api_key=api_key,
    )


def prepare_request_context(
    logger: Any,
    http_request: Request,
    request: MessagesRequest,
    target: UpstreamTarget,
    include_stream_logging: bool = False,
) -> MessageRequestContext:
    correlation_id_value = get_correlation_id(http_request)
    payload_summary: Optional[Dict[str, Any]] = None
    if logging_enabled() or include_stream_logging:
        payload_summary = summarize_messages_request(request)

    if logging_enabled():
        logger.info(
            "request",
            endpoint=str(http_request.url.path),
            method=http_request.method,
            correlation_id=correlation_id_value,
            model_requested=request.model,
            model_upstream=target.model,
            payload=redact_messages_request(request),
            payload_summary=payload_summary,
        )

    return MessageRequestContext(
        model_requested=request.model,
        model_upstream=target.model,
        correlation_id=correlation_id_value,
        payload_summary=payload_summary,
    )


def log_upstream_request(
    logger: Any,
    http_request: Request,
    context: MessageRequestContext,
    payload: Dict[str, Any],
) -> None:
    if not logging_enabled():
        return
    logger.debug(
        "upstream_request",
        endpoint=str(http_request.url.path),
        correlation_id=context.correlation_id,
        model_requested=context.model_requested,
        model_upstream=context.model_upstream,
        payload=redact_generic_payload(payload),
    )


def log_error(
    logger: Any,
    http_request: Request,
    context: Optional[MessageRequestContext],
    status_code: int,
    message: str,
) -> None:
    if not logging_enabled():
        return
    logger.info(
        "error",
        endpoint=str(http_request.url.path),
        status_code=status_code,
        duration_ms=duration_ms(http_request),
        correlation_id=get_correlation_id(http_request),
        model_requested=context.model_requested if context else None,
        model_upstream=context.model_upstream if context else None,
        message=message,
    )


def log_success_response(
    logger: Any,
    http_request: Request,
    context: MessageRequestContext,
    token_usage: Optional[Dict[str, Any]],
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    if not logging_enabled():
        return
    log_data: Dict[str, Any] = {
        "endpoint": str(http_request.url.path),
        "status_code": 200,
        "duration_ms": duration_ms(http_request),
        "correlation_id": context.correlation_id,
        "model_requested": context.model_requested,
        "model_upstream": context.model_upstream,
        "token_usage": token_usage,
    }
    if payload is not None:
        log_data["payload"] = payload
    logger.info("response", **log_data)


def error_response(status_code: int, error_type: Optional[str], message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=build_anthropic_error(status_code, error_type, message),
    )


def upstream_error_response(exc: OpenAIUpstreamError) -> Response:
    """Relay an upstream error status and body unchanged."""
    return Response(
        content=exc.body,
        status_code=exc.status_code,
        media_type=exc.content_type,
    )


def upstream_unreachable(exc: Exception) -> Tuple[int, str]:
    return 502, f"Upstream request failed: {exc}"
