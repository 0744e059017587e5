"""Observability helpers."""

from claude_relay.observability.logging import configure_logging, logging_enabled
from claude_relay.observability.redaction import (
    redact_anthropic_response,
    redact_messages_request,
    redact_text,
    summarize_messages_request,
)

__all__ = [
    "configure_logging",
    "logging_enabled",
    "redact_anthropic_response",
    "redact_messages_request",
    "redact_text",
    "summarize_messages_request",
]
