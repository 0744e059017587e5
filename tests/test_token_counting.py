from __future__ import annotations

import pytest
import tiktoken

from claude_relay.schema.openai import (
    ChatCompletionsRequest,
    FunctionDefinition,
    FunctionTool,
    SystemMessage,
    TextPart,
    UserMessage,
)
from claude_relay.token_counting.openai_count import (
    count_openai_request_tokens,
    count_tool_tokens,
    get_encoding,
)

MODEL = "gpt-4o-mini-2024-07-18"


def _expected_message_tokens(messages: list[dict[str, str]], model: str) -> int:
    encoding = get_encoding(model)
    tokens_per_message = 3
    tokens_per_name = 1
    total = 0
    for message in messages:
        total += tokens_per_message
        for key, value in message.items():
            total += len(encoding.encode(str(value)))
            if key == "name":
                total += tokens_per_name
    total += 3
    return total


def test_counts_basic_message() -> None:
    request = ChatCompletionsRequest(
        model=MODEL,
        messages=[UserMessage(content="Hello")],
    )
    expected = _expected_message_tokens(
        [{"role": "user", "content": "Hello"}],
        MODEL,
    )
    assert count_openai_request_tokens(request) == expected


def test_text_parts_are_joined() -> None:
    request = ChatCompletionsRequest(
        model=MODEL,
        messages=[UserMessage(content=[TextPart(text="Hello"), TextPart(text="there")])],
    )
    expected = _expected_message_tokens(
        [{"role": "user", "content": "Hello\nthere"}],
        MODEL,
    )
    assert count_openai_request_tokens(request) == expected


def test_system_message_increases_count() -> None:
    instructions = "Be helpful."
    request = ChatCompletionsRequest(
        model=MODEL,
        messages=[SystemMessage(content=instructions), UserMessage(content="Hello")],
    )
    expected = _expected_message_tokens(
        [
            {"role": "system", "content": instructions},
            {"role": "user", "content": "Hello"},
        ],
        MODEL,
    )
    assert count_openai_request_tokens(request) == expected


def test_tools_increase_count() -> None:
    tool = FunctionTool(
        function=FunctionDefinition(
            name="lookup",
            description="Lookup data",
            parameters={
                "type": "object",
                "properties": {"id": {"type": "string"}},
                "required": ["id"],
            },
        ),
    )
    base_request = ChatCompletionsRequest(
        model=MODEL,
        messages=[UserMessage(content="Hello")],
    )
    tool_request = ChatCompletionsRequest(
        model=MODEL,
        messages=[UserMessage(content="Hello")],
        tools=[tool],
    )
    base_count = count_openai_request_tokens(base_request)
    with_tool_count = count_openai_request_tokens(tool_request)
    assert with_tool_count > base_count
    assert with_tool_count == base_count + count_tool_tokens([tool], MODEL)


def test_plain_payload_dict_is_counted() -> None:
    payload = {"model": MODEL, "messages": [{"role": "user", "content": "Hello"}]}
    request = ChatCompletionsRequest(model=MODEL, messages=[UserMessage(content="Hello")])
    assert count_openai_request_tokens(payload) == count_openai_request_tokens(request)


def test_missing_model_raises() -> None:
    with pytest.raises(ValueError):
        count_openai_request_tokens({"messages": []})


def test_unknown_model_uses_fallback_encoding() -> None:
    encoding = get_encoding("made-up-model")
    assert encoding.name == tiktoken.get_encoding("o200k_base").name

    request = ChatCompletionsRequest(
        model="made-up-model",
        messages=[UserMessage(content="Hello")],
    )
    assert count_openai_request_tokens(request) > 0
