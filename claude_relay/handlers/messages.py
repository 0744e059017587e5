"""/v1/messages handler."""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Optional

import httpx
import structlog
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from claude_relay.handlers.messages_common import (
    MessageRequestContext,
    TargetResolutionError,
    error_response,
    log_error,
    log_success_response,
    log_upstream_request,
    normalize_openai_payload,
    prepare_request_context,
    resolve_upstream_target,
    upstream_error_response,
    upstream_unreachable,
)
from claude_relay.mapping.anthropic_to_openai import map_anthropic_request_to_openai
from claude_relay.mapping.openai_stream_to_anthropic import StreamTransformer
from claude_relay.mapping.openai_to_anthropic import (
    ResponseConversionError,
    map_openai_response_to_anthropic,
)
from claude_relay.observability.logging import (
    get_stream_logger,
    streaming_logging_enabled,
)
from claude_relay.observability.redaction import redact_anthropic_response
from claude_relay.schema.anthropic import MessagesRequest
from claude_relay.token_counting.openai_count import count_openai_request_tokens
from claude_relay.transport.openai_client import create_chat_completion
from claude_relay.transport.openai_stream import open_chat_completion_stream
from claude_relay.transport.upstream_common import OpenAIUpstreamError, UpstreamTarget

router = APIRouter()
logger = structlog.get_logger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


@router.post("/v1/messages")
@router.post("/{route_prefix:path}/v1/messages")
async def create_message(http_request: Request, request: MessagesRequest) -> Any:
    """Translate an Anthropic Messages request into a Chat Completions call."""

    try:
        target = resolve_upstream_target(http_request)
    except TargetResolutionError as exc:
        log_error(logger, http_request, None, 400, str(exc))
        return error_response(400, "invalid_request_error", str(exc))

    context = prepare_request_context(
        logger,
        http_request,
        request,
        target,
        include_stream_logging=bool(request.stream) and streaming_logging_enabled(),
    )
    try:
        openai_request = map_anthropic_request_to_openai(request, target.model)
    except ValueError as exc:
        log_error(logger, http_request, context, 400, str(exc))
        return error_response(400, "invalid_request_error", str(exc))

    payload = normalize_openai_payload(openai_request)
    log_upstream_request(logger, http_request, context, payload)

    if request.stream:
        return await _stream_message(http_request, context, target, payload)
    return await _create_message(http_request, context, target, payload)


async def _create_message(
    http_request: Request,
    context: MessageRequestContext,
    target: UpstreamTarget,
    payload: dict,
) -> Any:
    try:
        response = await create_chat_completion(payload, target)
    except OpenAIUpstreamError as exc:
        log_error(logger, http_request, context, exc.status_code, str(exc))
        return upstream_error_response(exc)
    except httpx.HTTPError as exc:
        status_code, message = upstream_unreachable(exc)
        log_error(logger, http_request, context, status_code, message)
        return error_response(status_code, "api_error", message)

    try:
        response_payload = map_openai_response_to_anthropic(
            response, context.model_echo
        )
    except ResponseConversionError as exc:
        logger.error(
            "response_conversion_failed",
            correlation_id=context.correlation_id,
            error=str(exc),
        )
        return error_response(500, "api_error", str(exc))

    log_success_response(
        logger,
        http_request,
        context,
        token_usage=response_payload["usage"],
        payload=redact_anthropic_response(response_payload),
    )
    return response_payload


def _estimate_input_tokens(payload: dict) -> int:
    try:
        return count_openai_request_tokens(payload)
    except ValueError:
        return 0


async def _stream_message(
    http_request: Request,
    context: MessageRequestContext,
    target: UpstreamTarget,
    payload: dict,
) -> Any:
    stream_logger = get_stream_logger() if streaming_logging_enabled() else None
    stream_start = time.perf_counter()

    try:
        upstream = await open_chat_completion_stream(payload, target)
    except OpenAIUpstreamError as exc:
        log_error(logger, http_request, context, exc.status_code, str(exc))
        return upstream_error_response(exc)
    except httpx.HTTPError as exc:
        status_code, message = upstream_unreachable(exc)
        log_error(logger, http_request, context, status_code, message)
        return error_response(status_code, "api_error", message)

    transformer = StreamTransformer(
        context.model_echo, initial_input_tokens=_estimate_input_tokens(payload)
    )
    if stream_logger:
        stream_logger.info(
            "stream_start",
            endpoint=str(http_request.url.path),
            correlation_id=context.correlation_id,
            message_id=transformer.message_id,
            model_requested=context.model_requested,
            model_upstream=context.model_upstream,
            payload_summary=context.payload_summary,
        )

    async def event_stream() -> AsyncIterator[bytes]:
        stream_failed = False
        error_message: Optional[str] = None
        chunk_count = 0
        frame_count = 0
        first_frame_at: Optional[float] = None
        try:
            async for chunk in upstream.iter_bytes():
                chunk_count += 1
                for frame in transformer.consume(chunk):
                    if first_frame_at is None:
                        first_frame_at = time.perf_counter()
                    frame_count += 1
                    yield frame
                if transformer.finished:
                    break
            else:
                for frame in transformer.flush():
                    frame_count += 1
                    yield frame
        except asyncio.CancelledError:
            stream_failed = True
            error_message = "stream cancelled"
            raise
        except httpx.HTTPError as exc:
            stream_failed = True
            error_message = str(exc) or type(exc).__name__
            logger.error(
                "stream_transport_error",
                correlation_id=context.correlation_id,
                message_id=transformer.message_id,
                error=error_message,
            )
        finally:
            await upstream.aclose()
            if not stream_failed:
                log_success_response(
                    logger,
                    http_request,
                    context,
                    token_usage={"output_tokens": transformer.state.output_tokens},
                )
            if stream_logger:
                stream_logger.info(
                    "stream_end",
                    endpoint=str(http_request.url.path),
                    correlation_id=context.correlation_id,
                    message_id=transformer.message_id,
                    duration_ms=int((time.perf_counter() - stream_start) * 1000),
                    time_to_first_frame_ms=(
                        int((first_frame_at - stream_start) * 1000)
                        if first_frame_at is not None
                        else None
                    ),
                    chunk_count=chunk_count,
                    frame_count=frame_count,
                    completed=transformer.finished,
                    stream_failed=stream_failed,
                    error_message=error_message,
                )

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )
