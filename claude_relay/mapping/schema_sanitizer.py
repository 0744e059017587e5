"""Strip JSON-Schema features that OpenAI-compatible backends reject."""

from __future__ import annotations

from typing import Any, Dict

DROPPED_KEYS = frozenset({"$schema", "additionalProperties"})
SUPPORTED_STRING_FORMATS = frozenset({"date-time", "enum"})


def clean_schema(schema: Any) -> Any:
    """Return a cleaned copy of ``schema``; the input is left untouched."""
    if isinstance(schema, list):
        return [clean_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    cleaned: Dict[str, Any] = {
        key: clean_schema(value)
        for key, value in schema.items()
        if key not in DROPPED_KEYS
    }
    if cleaned.get("type") == "string" and cleaned.get("format"):
        string_format = cleaned["format"]
        if not (
            isinstance(string_format, str)
            and string_format in SUPPORTED_STRING_FORMATS
        ):
            del cleaned["format"]
    return cleaned
