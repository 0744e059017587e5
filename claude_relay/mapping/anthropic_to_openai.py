"""Map Anthropic Messages requests to OpenAI Chat Completions requests."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from claude_relay.mapping.schema_sanitizer import clean_schema
from claude_relay.schema.anthropic import (
    ImageBlock,
    Message,
    MessagesRequest,
    TextBlock,
    ToolChoice as AnthropicToolChoice,
    ToolResultBlock,
    ToolUseBlock,
)
from claude_relay.schema.openai import (
    AssistantMessage,
    ChatCompletionsRequest,
    ChatMessage,
    ContentPart,
    FunctionCall,
    FunctionDefinition,
    FunctionTool,
    ImageUrl,
    ImageUrlPart,
    SystemMessage,
    TextPart,
    ToolCall,
    ToolChoice,
    ToolChoiceFunction,
    ToolChoiceFunctionName,
    ToolMessage,
    UserMessage,
)

MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 8192


def _system_to_text(system: Optional[Union[str, List[TextBlock]]]) -> Optional[str]:
    if system is None:
        return None
    if isinstance(system, str):
        return system
    return "\n".join(block.text for block in system)


def _safe_json_dumps(value: object) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return json.dumps(str(value), ensure_ascii=False)


def _tool_result_to_text(block: ToolResultBlock) -> str:
    if isinstance(block.content, str):
        return block.content
    return _safe_json_dumps(block.content)


def _image_to_part(block: ImageBlock) -> ImageUrlPart:
    url = f"data:{block.source.media_type};base64,{block.source.data}"
    return ImageUrlPart(image_url=ImageUrl(url=url))


def _user_content_to_part(block: Any) -> ContentPart:
    if isinstance(block, TextBlock):
        return TextPart(text=block.text)
    if isinstance(block, ImageBlock):
        return _image_to_part(block)
    raise ValueError(
        f"Unsupported user content block type: {getattr(block, 'type', None)}"
    )


def _user_message_to_chat(message: Message) -> List[ChatMessage]:
    if isinstance(message.content, str):
        return [UserMessage(content=message.content)]

    tool_results = [b for b in message.content if isinstance(b, ToolResultBlock)]
    other_blocks = [b for b in message.content if not isinstance(b, ToolResultBlock)]

    output: List[ChatMessage] = [
        ToolMessage(tool_call_id=block.tool_use_id, content=_tool_result_to_text(block))
        for block in tool_results
    ]
    if other_blocks:
        output.append(
            UserMessage(content=[_user_content_to_part(b) for b in other_blocks])
        )
    return output


def _assistant_message_to_chat(message: Message) -> AssistantMessage:
    if isinstance(message.content, str):
        return AssistantMessage(content=message.content or None)

    text_parts: List[str] = []
    tool_calls: List[ToolCall] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            text_parts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(
                ToolCall(
                    id=block.id,
                    function=FunctionCall(
                        name=block.name,
                        arguments=_safe_json_dumps(block.input or {}),
                    ),
                )
            )
        # Thinking blocks have no chat completions equivalent.

    return AssistantMessage(
        content="\n".join(text_parts) or None,
        tool_calls=tool_calls or None,
    )


def _message_to_chat(message: Message) -> List[ChatMessage]:
    if message.role == "user":
        return _user_message_to_chat(message)
    return [_assistant_message_to_chat(message)]


def _clamp_max_tokens(max_tokens: Optional[int]) -> Optional[int]:
    if max_tokens is None:
        return None
    return max(MIN_MAX_TOKENS, min(MAX_MAX_TOKENS, max_tokens))


def _map_tool_choice(tool_choice: Optional[AnthropicToolChoice]) -> Optional[ToolChoice]:
    if tool_choice is None:
        return None
    if tool_choice.type in ("auto", "any"):
        return "auto"
    if tool_choice.type == "tool" and tool_choice.name:
        return ToolChoiceFunction(function=ToolChoiceFunctionName(name=tool_choice.name))
    return None


def map_anthropic_request_to_openai(
    request: MessagesRequest, model: str
) -> ChatCompletionsRequest:
    """Convert an Anthropic Messages request into a Chat Completions request."""

    messages: List[ChatMessage] = []
    system_text = _system_to_text(request.system)
    if system_text:
        messages.append(SystemMessage(content=system_text))
    for message in request.messages:
        messages.extend(_message_to_chat(message))

    fields: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": _clamp_max_tokens(request.max_tokens),
        "temperature": request.temperature,
        "top_p": request.top_p,
        "stop": request.stop_sequences,
        "stream": request.stream,
        "tool_choice": _map_tool_choice(request.tool_choice),
    }
    if request.tools:
        fields["tools"] = [
            FunctionTool(
                function=FunctionDefinition(
                    name=tool.name,
                    description=tool.description,
                    parameters=clean_schema(tool.input_schema),
                )
            )
            for tool in request.tools
        ]
    return ChatCompletionsRequest(**fields)
