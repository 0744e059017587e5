"""OpenAI Chat Completions streaming transport client."""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict

import httpx

from claude_relay import config
from claude_relay.observability.logging import get_stream_logger, streaming_logging_enabled
from claude_relay.transport.upstream_common import (
    UpstreamTarget,
    build_upstream_request,
    upstream_error_from_response,
)


class OpenAIStream:
    """An open streaming response; the caller must ``aclose`` it."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self._client = client
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes():
            if chunk:
                yield chunk

    async def aclose(self) -> None:
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


async def open_chat_completion_stream(
    payload: Dict[str, Any], target: UpstreamTarget
) -> OpenAIStream:
    """Start a streaming chat completions call.

    The upstream status is checked before returning so that an error can still
    be relayed as a plain HTTP response; ``OpenAIUpstreamError`` carries it.
    """
    stream_logger = get_stream_logger() if streaming_logging_enabled() else None

    payload = dict(payload)
    payload["stream"] = True
    url, headers = build_upstream_request(target)

    if stream_logger:
        stream_logger.info(
            "upstream_connect_start",
            upstream_url=url,
            correlation_id=headers.get("X-Correlation-ID"),
        )

    client = httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT_SECONDS)
    try:
        request = client.build_request("POST", url, json=payload, headers=headers)
        response = await client.send(request, stream=True)
    except BaseException:
        await client.aclose()
        raise

    if response.is_error:
        try:
            await response.aread()
        finally:
            await response.aclose()
            await client.aclose()
        raise upstream_error_from_response(response)

    if stream_logger:
        stream_logger.info(
            "upstream_connect_done",
            upstream_url=url,
            status_code=response.status_code,
            correlation_id=headers.get("X-Correlation-ID"),
        )
    return OpenAIStream(client, response)
