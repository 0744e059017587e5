"""Redaction and summary helpers for logged payloads."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from claude_relay import config

REDACTION_TOKEN = "[REDACTED]"
LOG_ARRAY_LIMIT = 50
SENSITIVE_KEYS = {
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
    "token",
    "x_api_key",
}


def redaction_mode(override: Optional[str] = None) -> str:
    mode = (override or config.OBS_REDACTION_MODE or "full").strip().lower()
    if mode not in {"full", "none"}:
        return "full"
    return mode


def redact_text(text: Any, mode: Optional[str] = None) -> Any:
    if not isinstance(text, str):
        return text
    if redaction_mode(mode) == "none":
        return text
    return REDACTION_TOKEN


def normalize_payload(payload: Any) -> Any:
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_none=True)
    return payload


def _normalize_key(key: Any) -> Optional[str]:
    if not isinstance(key, str):
        return None
    return key.strip().lower().replace("-", "_")


def redact_value(value: Any, mode: Optional[str] = None) -> Any:
    """Redact every string leaf; sensitive keys are always masked."""
    if isinstance(value, str):
        return redact_text(value, mode)
    if isinstance(value, list):
        limited = value[:LOG_ARRAY_LIMIT]
        return [redact_value(item, mode) for item in limited]
    if isinstance(value, dict):
        redacted: Dict[str, Any] = {}
        for key, val in value.items():
            if _normalize_key(key) in SENSITIVE_KEYS:
                redacted[key] = REDACTION_TOKEN
            elif key in {"role", "type", "model", "name", "id", "tool_use_id"}:
                redacted[key] = val
            else:
                redacted[key] = redact_value(val, mode)
        return redacted
    return value


def redact_generic_payload(payload: Any, mode: Optional[str] = None) -> Any:
    return redact_value(normalize_payload(payload), mode)


def redact_messages_request(payload: Any, mode: Optional[str] = None) -> Any:
    return redact_generic_payload(payload, mode)


def redact_anthropic_response(payload: Any, mode: Optional[str] = None) -> Any:
    return redact_generic_payload(payload, mode)


def _iter_blocks(messages: Iterable[Any]) -> Iterable[Dict[str, Any]]:
    for message in messages:
        if not isinstance(message, dict):
            continue
        content = message.get("content")
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict):
                yield block


def summarize_messages_request(payload: Any) -> Dict[str, Any]:
    data = normalize_payload(payload)
    if not isinstance(data, dict):
        return {}

    messages = data.get("messages")
    tools = data.get("tools")
    message_list: List[Any] = messages if isinstance(messages, list) else []
    tool_use_count = 0
    tool_result_count = 0
    image_count = 0
    for block in _iter_blocks(message_list):
        block_type = block.get("type")
        if block_type == "tool_use":
            tool_use_count += 1
        elif block_type == "tool_result":
            tool_result_count += 1
        elif block_type == "image":
            image_count += 1

    return {
        "message_count": len(message_list),
        "tool_definition_count": len(tools) if isinstance(tools, list) else 0,
        "tool_use_count": tool_use_count,
        "tool_result_count": tool_result_count,
        "image_count": image_count,
        "stream": bool(data.get("stream")),
        "max_tokens": data.get("max_tokens"),
    }
