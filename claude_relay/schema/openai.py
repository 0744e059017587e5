"""OpenAI Chat Completions API request schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, SerializerFunctionWrapHandler, model_serializer


class TextPart(BaseModel):
    """OpenAI text content part."""

    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str


class ImageUrlPart(BaseModel):
    """OpenAI image content part."""

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Union[TextPart, ImageUrlPart]


class FunctionCall(BaseModel):
    name: str
    arguments: str


class ToolCall(BaseModel):
    """Assistant tool call entry."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: Union[str, List[ContentPart]]


class AssistantMessage(BaseModel):
    """Assistant history message; ``content`` is serialized even when null."""

    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None

    @model_serializer(mode="wrap")
    def _keep_null_content(
        self, handler: SerializerFunctionWrapHandler
    ) -> Dict[str, Any]:
        data = handler(self)
        data.setdefault("content", None)
        return data


class ToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    tool_call_id: str
    content: str


ChatMessage = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage]


class FunctionDefinition(BaseModel):
    """OpenAI function definition."""

    name: str
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class FunctionTool(BaseModel):
    """OpenAI function tool definition."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolChoiceFunctionName(BaseModel):
    name: str


class ToolChoiceFunction(BaseModel):
    """Tool choice forcing a specific function."""

    type: Literal["function"] = "function"
    function: ToolChoiceFunctionName


ToolChoice = Union[Literal["auto"], ToolChoiceFunction]


class ChatCompletionsRequest(BaseModel):
    """OpenAI /chat/completions request model."""

    model: str
    messages: List[ChatMessage]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop: Optional[List[str]] = None
    stream: Optional[bool] = None
    tools: Optional[List[FunctionTool]] = None
    tool_choice: Optional[ToolChoice] = None
