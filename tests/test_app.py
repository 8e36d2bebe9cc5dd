"""Tests for the HTTP surface: auth, validation and SSE responses.

The dispatcher and chat pipeline are swapped in through FastAPI's
dependency_overrides, so no model or clinic API is involved.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from clinic_agents.agents import default_agents
from clinic_agents.app import (
    app,
    get_api_keys,
    get_chat_pipeline,
    get_dispatcher,
    parse_api_keys,
)
from clinic_agents.event_log import EventLog
from clinic_agents.llm import ModelResponse
from clinic_agents.orchestrator import build_dispatcher
from clinic_agents.routing import KeywordClassifier
from clinic_agents.streaming import DONE_FRAME, ChatPipeline
from clinic_agents.tools.registry import ToolRegistry
from conftest import RecordingSink, StubModelClient

AUTH = {"Authorization": "Bearer key-123"}


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def client(recording_sink: RecordingSink) -> Iterator[TestClient]:
    event_log = EventLog(recording_sink)
    generator = StubModelClient([ModelResponse(text="Hello! How can I help?")])
    pipeline = ChatPipeline(generator, KeywordClassifier(default_agents()), ToolRegistry(), event_log)

    app.dependency_overrides[get_api_keys] = lambda: {"key-123": "user-7"}
    app.dependency_overrides[get_dispatcher] = lambda: build_dispatcher(None, event_log)
    app.dependency_overrides[get_chat_pipeline] = lambda: pipeline
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _payloads(body: str) -> list[Any]:
    frames = [f for f in body.split("\n\n") if f]
    assert all(f.startswith("data: ") for f in frames)
    return [f[len("data: ") :] for f in frames]


# --- Authentication ---


def test_parse_api_keys() -> None:
    assert parse_api_keys("alice:k1, bob:k2,broken,:k3") == {"k1": "alice", "k2": "bob"}


def test_missing_token_is_401_with_empty_body(client: TestClient) -> None:
    response = client.post("/agent/stream", json={"intent": "check in"})
    assert response.status_code == 401
    assert response.content == b""


def test_wrong_token_is_401(client: TestClient) -> None:
    response = client.post(
        "/agent/chat", json={"message": "hi"}, headers={"Authorization": "Bearer nope"}
    )
    assert response.status_code == 401


def test_unauthenticated_request_checked_before_body(client: TestClient) -> None:
    response = client.post("/agent/stream", json={})
    assert response.status_code == 401


# --- Validation ---


def test_missing_intent_is_400(client: TestClient) -> None:
    response = client.post("/agent/stream", json={"context": {}}, headers=AUTH)
    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")


def test_blank_intent_is_400(client: TestClient) -> None:
    response = client.post("/agent/stream", json={"intent": "   "}, headers=AUTH)
    assert response.status_code == 400
    assert response.text == "Missing intent"


def test_blank_message_is_400(client: TestClient) -> None:
    response = client.post("/agent/chat", json={"message": ""}, headers=AUTH)
    assert response.status_code == 400
    assert response.text == "Missing message"


# --- Streaming ---


def test_stream_endpoint_sends_events_then_done(
    client: TestClient, recording_sink: RecordingSink
) -> None:
    response = client.post(
        "/agent/stream",
        json={"intent": "check in patient Maria", "context": {"patientId": "p1"}},
        headers={**AUTH, "X-Session-Id": "dash-42"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.text.endswith(DONE_FRAME)

    payloads = _payloads(response.text)
    assert payloads[-1] == "[DONE]"
    events = [json.loads(p) for p in payloads[:-1]]
    assert [e["status"] for e in events] == ["thinking", "working", "complete"]
    assert events[-1]["agentName"] == "front-desk"

    assert {(r.user_id, r.session_id) for r in recording_sink.records} <= {("user-7", "dash-42")}


def test_stream_session_defaults_to_anonymous(
    client: TestClient, recording_sink: RecordingSink
) -> None:
    client.post("/agent/stream", json={"intent": "hello"}, headers=AUTH)

    assert {r.session_id for r in recording_sink.records} <= {"session-anon"}


def test_chat_endpoint_streams_frames(client: TestClient) -> None:
    response = client.post(
        "/agent/chat",
        json={"message": "hello", "history": [{"role": "assistant", "content": "Hi!"}]},
        headers=AUTH,
    )

    assert response.status_code == 200
    payloads = _payloads(response.text)
    assert payloads[-1] == "[DONE]"
    frames = [json.loads(p) for p in payloads[:-1]]
    assert [f["type"] for f in frames] == ["routing", "agent", "text", "done"]
    assert frames[2]["content"] == "Hello! How can I help?"


def test_chat_treats_unknown_history_role_as_user(
    client: TestClient, recording_sink: RecordingSink
) -> None:
    generator = StubModelClient([ModelResponse(text="Noted.")])
    pipeline = ChatPipeline(
        generator, KeywordClassifier(default_agents()), ToolRegistry(), EventLog(recording_sink)
    )
    app.dependency_overrides[get_chat_pipeline] = lambda: pipeline

    response = client.post(
        "/agent/chat",
        json={"message": "hello", "history": [{"role": "system", "content": "x"}]},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert _payloads(response.text)[-1] == "[DONE]"
    history = generator.calls[0]["conversation"]
    assert [(m.role, m.content) for m in history[:2]] == [("user", "x"), ("user", "hello")]
