"""/v1/messages/count_tokens handler."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request

from claude_relay import config
from claude_relay.handlers.messages_common import (
    MISSING_TARGET_MESSAGE,
    duration_ms,
    error_response,
    get_correlation_id,
)
from claude_relay.mapping.anthropic_to_openai import map_anthropic_request_to_openai
from claude_relay.mapping.model_path import resolve_target
from claude_relay.observability.logging import logging_enabled
from claude_relay.observability.redaction import (
    redact_messages_request,
    summarize_messages_request,
)
from claude_relay.schema.anthropic import CountTokensResponse, MessagesRequest
from claude_relay.token_counting.openai_count import count_openai_request_tokens

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/v1/messages/count_tokens", response_model=CountTokensResponse)
@router.post(
    "/{route_prefix:path}/v1/messages/count_tokens",
    response_model=CountTokensResponse,
)
async def count_tokens(http_request: Request, request: MessagesRequest):
    """Return OpenAI-aligned input token counts for an Anthropic request."""

    # Counting needs only the model name, not a reachable upstream.
    model_name = resolve_target(http_request.url.path)
    correlation_id_value = get_correlation_id(http_request)
    if not model_name:
        return error_response(400, "invalid_request_error", MISSING_TARGET_MESSAGE)
    model_upstream = config.redirect_model(model_name)

    if logging_enabled():
        logger.info(
            "request",
            endpoint=str(http_request.url.path),
            method=http_request.method,
            correlation_id=correlation_id_value,
            model_requested=request.model,
            model_upstream=model_upstream,
            payload=redact_messages_request(request),
            payload_summary=summarize_messages_request(request),
        )

    try:
        openai_request = map_anthropic_request_to_openai(request, model_upstream)
        input_tokens = count_openai_request_tokens(openai_request)
    except ValueError as exc:
        message = str(exc) or "Invalid request"
        if logging_enabled():
            logger.info(
                "error",
                endpoint=str(http_request.url.path),
                status_code=400,
                duration_ms=duration_ms(http_request),
                correlation_id=correlation_id_value,
                message=message,
            )
        return error_response(400, "invalid_request_error", message)

    if logging_enabled():
        logger.info(
            "response",
            endpoint=str(http_request.url.path),
            status_code=200,
            duration_ms=duration_ms(http_request),
            correlation_id=correlation_id_value,
            model_requested=request.model,
            model_upstream=model_upstream,
            token_usage={"input_tokens": input_tokens},
        )
    return CountTokensResponse(input_tokens=input_tokens)
