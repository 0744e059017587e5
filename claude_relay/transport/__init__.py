"""Transport clients for the OpenAI-compatible upstream."""

from claude_relay.transport.openai_client import create_chat_completion
from claude_relay.transport.openai_stream import OpenAIStream, open_chat_completion_stream
from claude_relay.transport.upstream_common import OpenAIUpstreamError, UpstreamTarget

__all__ = [
    "OpenAIStream",
    "OpenAIUpstreamError",
    "UpstreamTarget",
    "create_chat_completion",
    "open_chat_completion_stream",
]
