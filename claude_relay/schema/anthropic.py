"""Anthropic Messages API request schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel


class TextBlock(BaseModel):
    """Anthropic text content block."""

    type: Literal["text"] = "text"
    text: str


class ImageSource(BaseModel):
    """Base64 image payload."""

    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class ImageBlock(BaseModel):
    """Anthropic image content block."""

    type: Literal["image"] = "image"
    source: ImageSource


class ToolUseBlock(BaseModel):
    """Anthropic tool use content block."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any]


class ToolResultBlock(BaseModel):
    """Anthropic tool result content block."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Union[str, List[Dict[str, Any]], Dict[str, Any], None] = None
    is_error: Optional[bool] = None


class ThinkingBlock(BaseModel):
    """Assistant thinking block replayed from history."""

    type: Literal["thinking", "redacted_thinking"] = "thinking"
    thinking: Optional[str] = None
    signature: Optional[str] = None
    data: Optional[str] = None


ContentBlock = Union[
    TextBlock,
    ImageBlock,
    ToolUseBlock,
    ToolResultBlock,
    ThinkingBlock,
]


class Message(BaseModel):
    """Anthropic message entry."""

    role: Literal["user", "assistant"]
    content: Union[str, List[ContentBlock]]


class ToolDefinition(BaseModel):
    """Anthropic tool definition."""

    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None


class ToolChoice(BaseModel):
    """Anthropic tool choice object."""

    type: str
    name: Optional[str] = None


class MessagesRequest(BaseModel):
    """Anthropic /v1/messages request model."""

    model: Optional[str] = None
    messages: List[Message]
    system: Optional[Union[str, List[TextBlock]]] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    stream: Optional[bool] = None
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[ToolChoice] = None


class CountTokensResponse(BaseModel):
    """Anthropic /v1/messages/count_tokens response model."""

    input_tokens: int
