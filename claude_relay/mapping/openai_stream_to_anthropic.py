"""Translate an OpenAI Chat Completions SSE byte stream into Anthropic SSE events."""

from __future__ import annotations

import codecs
import json
from typing import Any, Dict, Iterator, List, Optional

import structlog

from .openai_stream_helpers import (
    DONE_SENTINEL,
    TEXT_BLOCK_INDEX,
    StreamState,
    ToolCallSlot,
    build_message_start_payload,
    content_block_start_payload,
    content_block_stop_payload,
    extract_data_payload,
    first_choice,
    format_sse,
    input_json_delta_payload,
    message_delta_payload,
    text_delta_payload,
)
from .openai_to_anthropic import map_finish_reason

logger = structlog.get_logger(__name__)


class StreamTransformer:
    """Incremental OpenAI -> Anthropic SSE converter for one streamed exchange.

    ``consume`` is fed raw upstream chunks in arrival order and yields encoded
    Anthropic SSE frames. Chunks may split lines, JSON objects or multi-byte
    characters anywhere; an unterminated trailing line is carried over to the
    next call. Instances are not safe for concurrent use.
    """

    def __init__(self, model: Optional[str], initial_input_tokens: int = 0) -> None:
        self.model = model
        self.initial_input_tokens = initial_input_tokens
        self.state = StreamState()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def message_id(self) -> str:
        return self.state.message_id

    @property
    def finished(self) -> bool:
        return self.state.finished

    def consume(self, chunk: bytes) -> Iterator[bytes]:
        """Yield the Anthropic frames produced by one upstream chunk."""
        state = self.state
        if state.finished:
            return

        if not state.initialized:
            yield from self._start_message()

        state.buffer += self._decoder.decode(chunk)
        lines = state.buffer.split("\n")
        state.buffer = lines.pop()

        for line in lines:
            yield from self._process_line(line)
            if state.finished:
                return

    def flush(self) -> Iterator[bytes]:
        """Finish the exchange after the upstream closed without ``[DONE]``."""
        state = self.state
        if state.finished:
            return

        if not state.initialized:
            yield from self._start_message()

        state.buffer += self._decoder.decode(b"", final=True)
        line, state.buffer = state.buffer, ""
        if line:
            yield from self._process_line(line)
        if not state.finished:
            yield from self._finish_message()

    def _emit(self, event: str, payload: Dict[str, Any]) -> bytes:
        return format_sse(event, payload).encode("utf-8")

    def _start_message(self) -> Iterator[bytes]:
        yield self._emit(
            "message_start",
            build_message_start_payload(
                self.state.message_id, self.model, self.initial_input_tokens
            ),
        )
        yield self._emit(
            "content_block_start",
            content_block_start_payload(TEXT_BLOCK_INDEX, {"type": "text", "text": ""}),
        )
        self.state.initialized = True

    def _process_line(self, line: str) -> Iterator[bytes]:
        data = extract_data_payload(line.rstrip("\r"))
        if data is None:
            return
        if data == DONE_SENTINEL:
            yield from self._finish_message()
            return

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            self.state.last_finish_reason = None
            logger.debug("stream_line_skipped", line_length=len(data))
            return

        yield from self._process_chunk(chunk)

    def _process_chunk(self, chunk: Any) -> Iterator[bytes]:
        state = self.state
        if isinstance(chunk, dict):
            usage = chunk.get("usage")
            if isinstance(usage, dict) and isinstance(
                usage.get("completion_tokens"), int
            ):
                state.output_tokens = usage["completion_tokens"]

        choice = first_choice(chunk)
        # Usage-only chunks carry no choice and keep the earlier finish reason.
        if choice is None:
            return
        finish_reason = choice.get("finish_reason")
        state.last_finish_reason = (
            finish_reason if isinstance(finish_reason, str) else None
        )
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return

        text = delta.get("content")
        if isinstance(text, str) and text:
            yield self._emit("content_block_delta", text_delta_payload(text))

        tool_deltas = delta.get("tool_calls")
        if isinstance(tool_deltas, list):
            for position, tool_delta in enumerate(tool_deltas):
                if isinstance(tool_delta, dict):
                    yield from self._process_tool_delta(position, tool_delta)

    def _process_tool_delta(
        self, position: int, tool_delta: Dict[str, Any]
    ) -> Iterator[bytes]:
        state = self.state
        slot_index = tool_delta.get("index")
        if not isinstance(slot_index, int):
            slot_index = position
        slot = state.get_or_create_slot(slot_index)

        function = tool_delta.get("function")
        if not isinstance(function, dict):
            function = {}
        if isinstance(tool_delta.get("id"), str) and tool_delta["id"]:
            slot.id = tool_delta["id"]
        if isinstance(function.get("name"), str) and function["name"]:
            slot.name = function["name"]
        fragment = function.get("arguments")
        if not isinstance(fragment, str):
            fragment = ""
        slot.arguments += fragment

        if not slot.started:
            if slot.ready:
                yield from self._start_tool_block(slot)
            return

        if fragment:
            yield self._emit(
                "content_block_delta",
                input_json_delta_payload(slot.block_index, fragment),
            )

    def _start_tool_block(self, slot: ToolCallSlot) -> Iterator[bytes]:
        slot.block_index = self.state.allocate_block_index()
        slot.started = True
        yield self._emit(
            "content_block_start",
            content_block_start_payload(
                slot.block_index,
                {"type": "tool_use", "id": slot.id, "name": slot.name, "input": {}},
            ),
        )
        # Arguments that arrived before id+name were known, plus this delta's.
        if slot.arguments:
            yield self._emit(
                "content_block_delta",
                input_json_delta_payload(slot.block_index, slot.arguments),
            )

    def _finish_message(self) -> Iterator[bytes]:
        state = self.state
        block_indices: List[int] = [TEXT_BLOCK_INDEX] + state.started_block_indices()
        for index in block_indices:
            yield self._emit("content_block_stop", content_block_stop_payload(index))
        stop_reason = map_finish_reason(state.last_finish_reason)
        yield self._emit(
            "message_delta", message_delta_payload(stop_reason, state.output_tokens)
        )
        yield self._emit("message_stop", {"type": "message_stop"})
        state.finished = True
        state.tool_calls.clear()
