"""Shared state and helper functions for OpenAI->Anthropic stream translation."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

TEXT_BLOCK_INDEX = 0
DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"


def format_sse(event: str, payload: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:24]}"


@dataclass
class ToolCallSlot:
    """One upstream tool-call slot and the Claude block it maps to."""

    id: str = ""
    name: str = ""
    arguments: str = ""
    block_index: Optional[int] = None
    started: bool = False

    @property
    def ready(self) -> bool:
        return bool(self.id and self.name)


@dataclass
class StreamState:
    message_id: str = field(default_factory=new_message_id)
    initialized: bool = False
    finished: bool = False
    buffer: str = ""
    next_block_index: int = TEXT_BLOCK_INDEX + 1
    tool_calls: Dict[int, ToolCallSlot] = field(default_factory=dict)
    last_finish_reason: Optional[str] = None
    output_tokens: int = 0

    def allocate_block_index(self) -> int:
        index = self.next_block_index
        self.next_block_index += 1
        return index

    def get_or_create_slot(self, slot_index: int) -> ToolCallSlot:
        slot = self.tool_calls.get(slot_index)
        if slot is None:
            slot = ToolCallSlot()
            self.tool_calls[slot_index] = slot
        return slot

    def started_block_indices(self) -> List[int]:
        return sorted(
            slot.block_index
            for slot in self.tool_calls.values()
            if slot.started and slot.block_index is not None
        )


def build_message_start_payload(
    message_id: str, model: Optional[str], input_tokens: int = 0
) -> Dict[str, Any]:
    return {
        "type": "message_start",
        "message": {
            "id": message_id,
            "type": "message",
            "role": "assistant",
            "model": model,
            "content": [],
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": input_tokens, "output_tokens": 0},
        },
    }


def content_block_start_payload(
    index: int, content_block: Dict[str, Any]
) -> Dict[str, Any]:
    return {
        "type": "content_block_start",
        "index": index,
        "content_block": content_block,
    }


def text_delta_payload(text: str) -> Dict[str, Any]:
    return {
        "type": "content_block_delta",
        "index": TEXT_BLOCK_INDEX,
        "delta": {"type": "text_delta", "text": text},
    }


def input_json_delta_payload(index: int, partial_json: str) -> Dict[str, Any]:
    return {
        "type": "content_block_delta",
        "index": index,
        "delta": {"type": "input_json_delta", "partial_json": partial_json},
    }


def content_block_stop_payload(index: int) -> Dict[str, Any]:
    return {"type": "content_block_stop", "index": index}


def message_delta_payload(stop_reason: str, output_tokens: int) -> Dict[str, Any]:
    return {
        "type": "message_delta",
        "delta": {"stop_reason": stop_reason, "stop_sequence": None},
        "usage": {"output_tokens": output_tokens},
    }


def extract_data_payload(line: str) -> Optional[str]:
    """Return the payload of an SSE ``data:`` line, or None for other lines."""
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX) :].strip()


def first_choice(chunk: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None
