"""OpenAI-aligned token counting utilities."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

import tiktoken

CHAT_FALLBACK_MODEL = "gpt-4o-mini-2024-07-18"
KNOWN_CHAT_MODELS = {
    "gpt-3.5-turbo-0125",
    "gpt-3.5-turbo-0613",
    "gpt-4-0613",
    "gpt-4-32k-0613",
    "gpt-4o",
    "gpt-4o-2024-08-06",
    "gpt-4o-mini",
    "gpt-4o-mini-2024-07-18",
}
TOOL_OVERHEAD = 4


def get_encoding(model: str) -> tiktoken.Encoding:
    """Return the OpenAI encoding for a model with fallback."""

    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("o200k_base")


def _as_dict(value: Any) -> Dict[str, Any]:
    if hasattr(value, "model_dump"):
        return value.model_dump(exclude_none=True)
    if isinstance(value, dict):
        return value
    return {}


def _content_to_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    texts: List[str] = []
    for part in content:
        if isinstance(part, dict) and part.get("type") == "text":
            text = part.get("text")
            if text:
                texts.append(text)
    return "\n".join(texts)


def _normalize_message(message: Dict[str, Any]) -> Dict[str, str]:
    normalized: Dict[str, str] = {
        "role": str(message.get("role")),
        "content": _content_to_text(message.get("content")),
    }
    tool_calls = message.get("tool_calls")
    if tool_calls:
        normalized["tool_calls"] = json.dumps(
            tool_calls, separators=(",", ":"), ensure_ascii=False
        )
    return normalized


def count_message_tokens(messages: List[Dict[str, str]], model: str) -> int:
    """Count tokens for OpenAI-style messages using cookbook constants."""

    if model not in KNOWN_CHAT_MODELS:
        return count_message_tokens(messages, CHAT_FALLBACK_MODEL)

    encoding = get_encoding(model)
    tokens_per_message = 3
    tokens_per_name = 1
    num_tokens = 0
    for message in messages:
        num_tokens += tokens_per_message
        for key, value in message.items():
            if value is None:
                continue
            num_tokens += len(encoding.encode(str(value)))
            if key == "name":
                num_tokens += tokens_per_name
    num_tokens += 3
    return num_tokens


def count_tool_tokens(tools: Optional[Iterable[Any]], model: str) -> int:
    """Count tokens for tool definitions using OpenAI cookbook approach."""

    if not tools:
        return 0
    encoding = get_encoding(model)
    total_tokens = 0
    for tool in tools:
        function = _as_dict(_as_dict(tool).get("function"))
        total_tokens += TOOL_OVERHEAD
        name = function.get("name") or ""
        description = function.get("description") or ""
        parameters = function.get("parameters") or {}
        if name:
            total_tokens += len(encoding.encode(name))
        if description:
            total_tokens += len(encoding.encode(description))
        parameters_json = json.dumps(
            parameters, separators=(",", ":"), ensure_ascii=False
        )
        total_tokens += len(encoding.encode(parameters_json))
    return total_tokens


def count_openai_request_tokens(request: Any) -> int:
    """Count input tokens for a chat completions request."""

    payload = _as_dict(request)
    model = payload.get("model")
    if not model:
        raise ValueError("model is required for token counting")
    messages = [
        _normalize_message(message)
        for message in payload.get("messages", [])
        if isinstance(message, dict)
    ]

    message_tokens = count_message_tokens(messages, model)
    tool_tokens = count_tool_tokens(payload.get("tools"), model)
    return int(message_tokens + tool_tokens)
