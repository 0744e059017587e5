"""Shared upstream request helpers for the chat completions transports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from asgi_correlation_id import correlation_id

CHAT_COMPLETIONS_PATH = "/chat/completions"


@dataclass(frozen=True)
class UpstreamTarget:
    """Where and as whom one exchange is forwarded."""

    model: str
    base_url: str
    api_key: Optional[str] = None


class OpenAIUpstreamError(Exception):
    """Raised when the upstream answers with a non-success status.

    The raw body and content type are kept so they can be relayed verbatim.
    """

    def __init__(
        self, status_code: int, body: bytes, content_type: Optional[str] = None
    ) -> None:
        super().__init__(f"OpenAI upstream error ({status_code})")
        self.status_code = status_code
        self.body = body
        self.content_type = content_type


def build_upstream_request(target: UpstreamTarget) -> tuple[str, dict[str, str]]:
    """Return (url, headers) for a chat completions call."""
    headers: dict[str, str] = {"Content-Type": "application/json"}

    upstream_correlation_id = correlation_id.get()
    if upstream_correlation_id:
        headers["X-Correlation-ID"] = upstream_correlation_id

    if target.api_key:
        headers["Authorization"] = f"Bearer {target.api_key}"
    return f"{target.base_url.rstrip('/')}{CHAT_COMPLETIONS_PATH}", headers


def upstream_error_from_response(response: httpx.Response) -> OpenAIUpstreamError:
    """Build the error for an already-read error response."""
    return OpenAIUpstreamError(
        response.status_code,
        response.content,
        response.headers.get("content-type"),
    )
