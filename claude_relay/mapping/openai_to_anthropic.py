"""Map OpenAI Chat Completions responses to Anthropic Messages responses."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

STOP_REASON_BY_FINISH_REASON = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
}


class ResponseConversionError(ValueError):
    """Raised when an upstream response cannot be expressed as a Claude message."""


def map_finish_reason(finish_reason: Any) -> str:
    """Map an OpenAI finish_reason to an Anthropic stop_reason."""
    if isinstance(finish_reason, str):
        return STOP_REASON_BY_FINISH_REASON.get(finish_reason, "end_turn")
    return "end_turn"


def normalize_openai_usage(usage: Optional[Dict[str, Any]]) -> Dict[str, int]:
    if not isinstance(usage, dict):
        usage = {}
    input_tokens = usage.get("prompt_tokens")
    if not isinstance(input_tokens, int):
        input_tokens = 0
    output_tokens = usage.get("completion_tokens")
    if not isinstance(output_tokens, int):
        output_tokens = 0
    return {"input_tokens": input_tokens, "output_tokens": output_tokens}


def _single_choice(response: Any) -> Dict[str, Any]:
    choices = response.get("choices") if isinstance(response, dict) else None
    if not isinstance(choices, list) or not choices:
        raise ResponseConversionError("Upstream response contains no choices")
    choice = choices[0]
    if not isinstance(choice, dict) or not isinstance(choice.get("message"), dict):
        raise ResponseConversionError("Upstream choice has no message")
    return choice


def _tool_call_to_block(call: Dict[str, Any]) -> Dict[str, Any]:
    function = call.get("function") or {}
    arguments = function.get("arguments")
    try:
        tool_input = json.loads(arguments)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ResponseConversionError(
            f"Invalid JSON arguments for tool call {call.get('id')}: {exc}"
        ) from exc
    return {
        "type": "tool_use",
        "id": call.get("id"),
        "name": function.get("name"),
        "input": tool_input,
    }


def map_openai_response_to_anthropic(
    response: Dict[str, Any], model: Optional[str]
) -> Dict[str, Any]:
    """Convert a Chat Completions response into an Anthropic message response."""

    choice = _single_choice(response)
    message = choice["message"]

    content_blocks: List[Dict[str, Any]] = []
    text = message.get("content")
    if text:
        content_blocks.append({"type": "text", "text": text})
    for call in message.get("tool_calls") or []:
        content_blocks.append(_tool_call_to_block(call))

    return {
        "id": response.get("id"),
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": content_blocks,
        "stop_reason": map_finish_reason(choice.get("finish_reason")),
        "stop_sequence": None,
        "usage": normalize_openai_usage(response.get("usage")),
    }
