"""Configuration helpers for OpenAI-compatible upstream access."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Dict, Optional

import structlog

from claude_relay.mapping.model_path import apply_redirection

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = (os.getenv("OPENAI_BASE_URL") or "").rstrip("/") or None

logger = structlog.get_logger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


UPSTREAM_TIMEOUT_SECONDS = _env_float("UPSTREAM_TIMEOUT_SECONDS", 300.0)

OBS_LOG_ENABLED = _env_bool("OBS_LOG_ENABLED", False)
OBS_LOG_ALL = _env_bool("OBS_LOG_ALL", False)
OBS_LOG_FILE = os.getenv("OBS_LOG_FILE", "./logs/requests.log")
OBS_REDACTION_MODE = os.getenv("OBS_REDACTION_MODE", "full")
OBS_LOG_PRETTY = _env_bool("OBS_LOG_PRETTY", True)
OBS_STREAM_LOG_ENABLED = _env_bool("OBS_STREAM_LOG_ENABLED", False)
OBS_STREAM_LOG_FILE = os.getenv("OBS_STREAM_LOG_FILE", "./logs/streaming.log")


def get_openai_base_url() -> Optional[str]:
    return OPENAI_BASE_URL


def resolve_api_key(
    x_api_key: Optional[str] = None, authorization: Optional[str] = None
) -> Optional[str]:
    """Return the bearer credential to forward upstream.

    ``OPENAI_API_KEY`` wins; otherwise the caller's ``x-api-key`` header, then
    a ``Bearer`` token from its ``Authorization`` header.
    """
    if OPENAI_API_KEY:
        return OPENAI_API_KEY
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    if authorization:
        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return None


def parse_model_redirections(raw: Optional[str]) -> Dict[str, str]:
    """Parse a MODEL_REDIRECTIONS JSON object into a name->name table.

    Malformed input never raises: it is logged and yields an empty table, and
    entries that are not string->string pairs are dropped.
    """
    if not raw or not raw.strip():
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning(
            "model_redirections_invalid",
            reason="invalid_json",
            error=str(exc),
        )
        return {}
    if not isinstance(parsed, dict):
        logger.warning(
            "model_redirections_invalid",
            reason="not_an_object",
            value_type=type(parsed).__name__,
        )
        return {}

    table: Dict[str, str] = {}
    for source, target in parsed.items():
        if not isinstance(target, str) or not target.strip():
            logger.warning(
                "model_redirections_invalid",
                reason="bad_entry",
                key=source,
            )
            continue
        table[source] = target

    if OBS_LOG_ENABLED:
        logger.info("model_redirections_loaded", entry_count=len(table))
    return table


@lru_cache(maxsize=1)
def get_model_redirections() -> Dict[str, str]:
    return parse_model_redirections(os.getenv("MODEL_REDIRECTIONS"))


def _clear_model_redirections_cache_for_tests() -> None:
    get_model_redirections.cache_clear()


def redirect_model(model_name: str) -> str:
    """Apply the process-wide redirection table to a resolved model name."""
    redirected = apply_redirection(model_name, get_model_redirections())
    if OBS_LOG_ENABLED:
        logger.info(
            "model_resolved",
            model_requested=model_name,
            model_upstream=redirected,
            redirected=redirected != model_name,
        )
    return redirected
