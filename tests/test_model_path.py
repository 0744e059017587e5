import pytest

from claude_relay.mapping.model_path import apply_redirection, resolve_target


def test_default_prefix_takes_last_segment() -> None:
    path = "/default/https/api.example.com/v1/chat/gpt-4/v1/messages"

    assert resolve_target(path) == "gpt-4"


def test_model_prefix_takes_first_segment() -> None:
    assert resolve_target("/gpt-4/https/api.example.com/v1/messages") == "gpt-4"


def test_default_prefix_is_case_insensitive() -> None:
    assert resolve_target("/DEFAULT/https/host/qwen-max/v1/messages") == "qwen-max"


def test_query_string_is_ignored() -> None:
    assert resolve_target("/gpt-4o/v1/messages?beta=true") == "gpt-4o"


def test_last_messages_suffix_is_used() -> None:
    path = "/default/https/host/v1/messages/deepseek-chat/v1/messages"

    assert resolve_target(path) == "deepseek-chat"


@pytest.mark.parametrize(
    "path",
    ["/v1/messages", "//v1/messages", "/gpt-4/chat", ""],
)
def test_paths_without_segments_resolve_to_none(path: str) -> None:
    assert resolve_target(path) is None


def test_redirection_hit_and_miss() -> None:
    table = {"claude-3-5-sonnet": "gpt-4o"}

    assert apply_redirection("claude-3-5-sonnet", table) == "gpt-4o"
    assert apply_redirection("gpt-4", table) == "gpt-4"
    assert apply_redirection("gpt-4", {}) == "gpt-4"
