"""OpenAI Chat Completions transport client."""

from __future__ import annotations

from typing import Any, Dict

import httpx
import structlog

from claude_relay import config
from claude_relay.transport.upstream_common import (
    OpenAIUpstreamError,
    UpstreamTarget,
    build_upstream_request,
    upstream_error_from_response,
)

logger = structlog.get_logger(__name__)

__all__ = ["OpenAIUpstreamError", "create_chat_completion"]


async def create_chat_completion(
    payload: Dict[str, Any], target: UpstreamTarget
) -> Dict[str, Any]:
    """POST a chat completions payload and return the decoded JSON response."""
    url, headers = build_upstream_request(target)
    async with httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT_SECONDS) as client:
        response = await client.post(url, json=payload, headers=headers)

    if response.is_error:
        if config.OBS_LOG_ENABLED:
            logger.info(
                "upstream_error",
                upstream_url=url,
                status_code=response.status_code,
            )
        raise upstream_error_from_response(response)

    return response.json()
