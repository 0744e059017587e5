"""Anthropic error envelope helpers."""

from __future__ import annotations

from typing import Any, Dict

ERROR_TYPE_BY_STATUS = {
    400: "invalid_request_error",
    401: "authentication_error",
    403: "permission_error",
    404: "not_found_error",
    413: "request_too_large",
    429: "rate_limit_error",
    529: "overloaded_error",
}


def error_type_for_status(status_code: int, default: str = "api_error") -> str:
    return ERROR_TYPE_BY_STATUS.get(status_code, default)


def build_anthropic_error(
    status_code: int,
    error_type: str | None,
    message: str,
) -> Dict[str, Any]:
    """Return an Anthropic error envelope."""

    return {
        "type": "error",
        "error": {
            "type": error_type or error_type_for_status(status_code),
            "message": message,
        },
    }
