import json
from typing import Any, Dict, List

import httpx
from fastapi.testclient import TestClient

from claude_relay import config
from claude_relay.app import app
from claude_relay.handlers import messages
from claude_relay.transport.upstream_common import OpenAIUpstreamError, UpstreamTarget


def _minimal_request(**overrides: Any) -> dict:
    request = {
        "model": "claude-3-sonnet-20240229",
        "max_tokens": 256,
        "messages": [{"role": "user", "content": "Hello"}],
    }
    request.update(overrides)
    return request


def _configure(monkeypatch, base_url: str | None = "https://example.test/v1") -> None:
    monkeypatch.setattr(config, "OPENAI_BASE_URL", base_url)
    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    monkeypatch.delenv("MODEL_REDIRECTIONS", raising=False)
    config._clear_model_redirections_cache_for_tests()


def _completion(text: str = "Hi there") -> Dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 9, "completion_tokens": 3},
    }


def _parse_sse(body: str) -> List[tuple]:
    events = []
    for block in body.strip().split("\n\n"):
        event = ""
        data: Dict[str, Any] = {}
        for line in block.splitlines():
            if line.startswith("event:"):
                event = line.split(":", 1)[1].strip()
            elif line.startswith("data:"):
                data = json.loads(line.split(":", 1)[1].strip())
        if event:
            events.append((event, data))
    return events


def test_messages_forwards_to_model_from_path(monkeypatch) -> None:
    _configure(monkeypatch)
    calls: List[tuple] = []

    async def _fake_create(payload: Dict[str, Any], target: UpstreamTarget):
        calls.append((payload, target))
        return _completion()

    monkeypatch.setattr(messages, "create_chat_completion", _fake_create)
    client = TestClient(app)

    response = client.post(
        "/gpt-4o/v1/messages",
        json=_minimal_request(),
        headers={"x-api-key": "sk-caller"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "message"
    assert body["model"] == "claude-3-sonnet-20240229"
    assert body["content"] == [{"type": "text", "text": "Hi there"}]
    assert body["stop_reason"] == "end_turn"
    assert body["usage"] == {"input_tokens": 9, "output_tokens": 3}

    payload, target = calls[0]
    assert payload["model"] == "gpt-4o"
    assert payload["messages"] == [{"role": "user", "content": "Hello"}]
    assert target.base_url == "https://example.test/v1"
    assert target.model == "gpt-4o"
    assert target.api_key == "sk-caller"


def test_default_prefix_and_redirection(monkeypatch) -> None:
    _configure(monkeypatch)
    monkeypatch.setenv("MODEL_REDIRECTIONS", json.dumps({"claude-haiku": "gpt-4o-mini"}))
    config._clear_model_redirections_cache_for_tests()
    targets: List[UpstreamTarget] = []

    async def _fake_create(payload: Dict[str, Any], target: UpstreamTarget):
        targets.append(target)
        return _completion()

    monkeypatch.setattr(messages, "create_chat_completion", _fake_create)
    client = TestClient(app)

    response = client.post(
        "/default/ignored/claude-haiku/v1/messages",
        json=_minimal_request(),
        headers={"Authorization": "Bearer sk-bearer"},
    )

    assert response.status_code == 200
    assert targets[0].model == "gpt-4o-mini"
    assert targets[0].api_key == "sk-bearer"
    config._clear_model_redirections_cache_for_tests()


def test_missing_model_in_path_returns_400(monkeypatch) -> None:
    _configure(monkeypatch)
    client = TestClient(app)

    response = client.post("/v1/messages", json=_minimal_request())

    assert response.status_code == 400
    payload = response.json()
    assert payload["type"] == "error"
    assert payload["error"]["type"] == "invalid_request_error"
    assert "Could not determine target base URL or model name" in payload["error"]["message"]


def test_missing_base_url_returns_400(monkeypatch) -> None:
    _configure(monkeypatch, base_url=None)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json=_minimal_request())

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_request_error"


def test_invalid_body_returns_anthropic_error(monkeypatch) -> None:
    _configure(monkeypatch)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json={"messages": "nope"})

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_request_error"


def test_upstream_error_is_relayed_verbatim(monkeypatch) -> None:
    _configure(monkeypatch)
    upstream_body = b'{"error":{"message":"Rate limit reached","type":"requests"}}'

    async def _fake_create(payload: Dict[str, Any], target: UpstreamTarget):
        raise OpenAIUpstreamError(429, upstream_body, "application/json")

    monkeypatch.setattr(messages, "create_chat_completion", _fake_create)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json=_minimal_request())

    assert response.status_code == 429
    assert response.content == upstream_body


def test_unreachable_upstream_returns_502(monkeypatch) -> None:
    _configure(monkeypatch)

    async def _fake_create(payload: Dict[str, Any], target: UpstreamTarget):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(messages, "create_chat_completion", _fake_create)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json=_minimal_request())

    assert response.status_code == 502
    assert response.json()["error"]["type"] == "api_error"


def test_unconvertible_response_returns_500(monkeypatch) -> None:
    _configure(monkeypatch)

    async def _fake_create(payload: Dict[str, Any], target: UpstreamTarget):
        return {"id": "chatcmpl-1", "choices": []}

    monkeypatch.setattr(messages, "create_chat_completion", _fake_create)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json=_minimal_request())

    assert response.status_code == 500
    assert response.json()["error"]["type"] == "api_error"


class _FakeUpstream:
    def __init__(self, chunks: List[bytes]) -> None:
        self._chunks = chunks
        self.closed = False

    async def iter_bytes(self):
        for chunk in self._chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def test_stream_translates_upstream_chunks(monkeypatch) -> None:
    _configure(monkeypatch)
    upstream = _FakeUpstream(
        [
            b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n',
            b'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}\n\ndata: [DONE]\n\n',
        ]
    )
    payloads: List[Dict[str, Any]] = []

    async def _fake_open(payload: Dict[str, Any], target: UpstreamTarget):
        payloads.append(payload)
        return upstream

    monkeypatch.setattr(messages, "open_chat_completion_stream", _fake_open)
    client = TestClient(app)

    with client.stream(
        "POST", "/gpt-4o/v1/messages", json=_minimal_request(stream=True)
    ) as response:
        assert response.status_code == 200
        assert "text/event-stream" in response.headers.get("content-type", "")
        body = "".join(response.iter_text())

    events = _parse_sse(body)
    assert [name for name, _ in events] == [
        "message_start",
        "content_block_start",
        "content_block_delta",
        "content_block_stop",
        "message_delta",
        "message_stop",
    ]
    assert events[0][1]["message"]["model"] == "claude-3-sonnet-20240229"
    assert events[2][1]["delta"]["text"] == "Hi"
    assert events[4][1]["delta"]["stop_reason"] == "end_turn"
    assert payloads[0]["stream"] is True
    assert upstream.closed


def test_stream_without_done_is_finished_on_close(monkeypatch) -> None:
    _configure(monkeypatch)
    upstream = _FakeUpstream([b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'])

    async def _fake_open(payload: Dict[str, Any], target: UpstreamTarget):
        return upstream

    monkeypatch.setattr(messages, "open_chat_completion_stream", _fake_open)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json=_minimal_request(stream=True))

    events = _parse_sse(response.text)
    assert events[-1][0] == "message_stop"
    assert upstream.closed


def test_stream_upstream_error_is_relayed(monkeypatch) -> None:
    _configure(monkeypatch)

    async def _fake_open(payload: Dict[str, Any], target: UpstreamTarget):
        raise OpenAIUpstreamError(401, b'{"error":"bad key"}', "application/json")

    monkeypatch.setattr(messages, "open_chat_completion_stream", _fake_open)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages", json=_minimal_request(stream=True))

    assert response.status_code == 401
    assert response.content == b'{"error":"bad key"}'


def test_count_tokens_uses_path_model(monkeypatch) -> None:
    _configure(monkeypatch, base_url=None)
    client = TestClient(app)

    response = client.post("/gpt-4o/v1/messages/count_tokens", json=_minimal_request())

    assert response.status_code == 200
    assert response.json()["input_tokens"] > 0


def test_count_tokens_without_model_returns_400(monkeypatch) -> None:
    _configure(monkeypatch)
    client = TestClient(app)

    response = client.post("/v1/messages/count_tokens", json=_minimal_request())

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_request_error"


def test_health() -> None:
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_route_returns_anthropic_404() -> None:
    client = TestClient(app)

    response = client.get("/v1/models")

    assert response.status_code == 404
    payload = response.json()
    assert payload["type"] == "error"
    assert payload["error"]["type"] == "not_found_error"
    assert payload["error"]["message"] == "Not Found. Only /v1/messages endpoint is supported"


def test_unrecognised_tool_choice_is_dropped_not_rejected(monkeypatch) -> None:
    _configure(monkeypatch)
    payloads: List[Dict[str, Any]] = []

    async def _fake_create(payload: Dict[str, Any], target: UpstreamTarget):
        payloads.append(payload)
        return _completion()

    monkeypatch.setattr(messages, "create_chat_completion", _fake_create)
    client = TestClient(app)

    response = client.post(
        "/gpt-4/v1/messages",
        json=_minimal_request(tool_choice={"type": "function"}),
    )

    assert response.status_code == 200
    assert "tool_choice" not in payloads[0]
