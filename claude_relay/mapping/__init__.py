"""Mapping helpers between Anthropic and OpenAI schemas."""

from .anthropic_to_openai import map_anthropic_request_to_openai
from .model_path import apply_redirection, resolve_target
from .openai_stream_to_anthropic import StreamTransformer
from .openai_to_anthropic import (
    ResponseConversionError,
    map_openai_response_to_anthropic,
)
from .schema_sanitizer import clean_schema

__all__ = [
    "ResponseConversionError",
    "StreamTransformer",
    "apply_redirection",
    "clean_schema",
    "map_anthropic_request_to_openai",
    "map_openai_response_to_anthropic",
    "resolve_target",
]
