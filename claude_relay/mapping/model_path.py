"""Resolve the upstream model name from a proxy request path."""

from __future__ import annotations

from typing import List, Mapping, Optional

MESSAGES_SUFFIX = "/v1/messages"
DEFAULT_SEGMENT = "default"


def _path_segments(path: str) -> List[str]:
    path_without_query = path.split("?", 1)[0]
    suffix_at = path_without_query.rfind(MESSAGES_SUFFIX)
    if suffix_at < 0:
        return []
    dynamic_path = path_without_query[:suffix_at]
    return [segment for segment in dynamic_path.split("/") if segment]


def resolve_target(path: str) -> Optional[str]:
    """Return the model name encoded in ``path``, or None if it has none.

    ``/gpt-4/https/api.example.com/v1/messages`` names ``gpt-4`` in its first
    segment. When the first segment is ``default`` the model is the last
    segment instead, as in ``/default/https/host/v1/chat/gpt-4/v1/messages``.
    """
    segments = _path_segments(path)
    if not segments:
        return None
    if segments[0].lower() == DEFAULT_SEGMENT:
        return segments.pop()
    return segments.pop(0)


def apply_redirection(model_name: str, table: Mapping[str, str]) -> str:
    return table.get(model_name, model_name)
