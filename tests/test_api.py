"""Tests for the HTTP surface."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from server import create_app
from tests.helpers import FakeCompletionClient, text, tool
from tonepad.config import Settings
from tonepad.session import Session


@pytest.fixture
def client(session):
    with TestClient(create_app(session=session)) as test_client:
        yield test_client


def sse_events(body: str) -> list[dict]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


def test_root(client):
    assert client.get("/").json() == {"Hello": "tonepad"}


def test_read_state(client, session):
    data = client.get("/api/session").json()
    assert data["script"] == session.store.state.script
    assert len(data["messages"]) == 1
    assert data["is_running"] is False


def test_update_script(client):
    resp = client.put("/api/session/script", json={"script": "context['x'] = 1"})
    assert resp.status_code == 200
    assert resp.json()["script"] == "context['x'] = 1"


def test_run_and_stop(client, runtime):
    data = client.post("/api/session/run").json()
    assert data["record"]["success"] is True
    assert data["state"]["is_running"] is True
    assert runtime.live_nodes

    data = client.post("/api/session/stop").json()
    assert data["is_running"] is False
    assert runtime.live_nodes == []

    history = client.get("/api/session/history").json()
    assert len(history) == 1


def test_run_failure_is_reported_not_raised(client):
    client.put("/api/session/script", json={"script": "undefined_name + 1"})
    data = client.post("/api/session/run").json()
    assert data["record"]["success"] is False
    assert "undefined_name" in data["record"]["error_detail"]
    assert data["state"]["is_running"] is False


def test_clear_messages(client, session):
    session.store.add_message("user", "hello")
    data = client.delete("/api/session/messages").json()
    assert len(data["messages"]) == 1


def test_list_and_dispatch_actions(client, session):
    names = [a["name"] for a in client.get("/api/actions").json()]
    assert "modify_code_section" in names and len(names) == 6

    result = client.post("/api/actions/update_code", json={"code": "a = 1"}).json()
    assert result["success"] is True
    assert session.store.state.script == "a = 1"

    result = client.post(
        "/api/actions/modify_code_section", json={"targetSection": "zzz", "newSection": "b"}
    ).json()
    assert result["success"] is False
    assert session.store.state.script == "a = 1"

    result = client.post("/api/actions/nope").json()
    assert result == {
        "success": False,
        "message": "Unknown action: nope",
        "updated_script": None,
        "error": "Action not found",
        "snapshot": None,
    }


def test_chat_without_key(client):
    data = client.post("/api/chat", json={"message": "hi"}).json()
    assert data["response"]["success"] is False
    assert data["response"]["error"] == "API key not configured"


def test_chat_rejects_empty_message(client):
    assert client.post("/api/chat", json={"message": ""}).status_code == 422


def test_models_without_key_returns_allowlist(client, settings):
    assert client.get("/api/models").json() == {"models": settings.allowed_models}


def test_chat_and_stream_with_assistant(make_chat_session):
    chat_session, _ = make_chat_session(
        text("Here you go."), tool("update_code", code="context['k'] = 1")
    )
    with TestClient(create_app(session=chat_session)) as test_client:
        data = test_client.post("/api/chat", json={"message": "simplify"}).json()
        assert data["response"]["code_updated"] is True
        assert data["state"]["script"] == "context['k'] = 1"

        resp = test_client.post("/api/chat/stream", json={"message": "again"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = sse_events(resp.text)

    types = [e["event_type"] for e in events]
    assert types == [
        "chat_started",
        "progress_update_tool_action_started",
        "progress_update_tool_action_completed",
        "agent_output",
    ]
    assert events[-1]["data"]["message"] == "Here you go."
    assert events[-1]["data"]["code_updated"] is True


def test_chat_with_model_selection(make_chat_session, settings):
    chat_session, client = make_chat_session(text("ok"))
    chosen = settings.allowed_models[-1]
    with TestClient(create_app(session=chat_session)) as test_client:
        data = test_client.post("/api/chat", json={"message": "hi", "model": chosen}).json()
        assert data["response"]["model"] == chosen
        assert client.requests[-1].model == chosen

        data = test_client.post("/api/chat", json={"message": "hi", "model": "x/y"}).json()
        assert data["response"]["success"] is False
        assert data["response"]["error"] == "Model not allowed: x/y"


@pytest.fixture
def gateway(monkeypatch):
    """Route the models endpoint's outbound httpx calls to a canned gateway."""
    seen: list[httpx.Request] = []
    replies: dict[str, httpx.Response] = {}
    real_async_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if "models" in replies:
            return replies["models"]
        return httpx.Response(500)

    def make_client(*args, **kwargs):
        return real_async_client(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", make_client)
    return seen, replies


def keyed_app():
    settings = Settings(api_key="gw-test-key", base_url="https://gateway.test/v1")
    return create_app(session=Session(settings, completion_client=FakeCompletionClient()))


def test_models_intersects_allowlist_with_gateway(gateway):
    seen, replies = gateway
    replies["models"] = httpx.Response(
        200, json={"data": [{"id": "openai/gpt-5"}, {"id": "openai/gpt-4.1"}, {"id": "other/m"}]}
    )
    with TestClient(keyed_app()) as test_client:
        data = test_client.get("/api/models").json()

    assert data == {"models": ["openai/gpt-4.1", "openai/gpt-5"]}
    assert str(seen[0].url) == "https://gateway.test/v1/models"
    assert seen[0].headers["Authorization"] == "Bearer gw-test-key"


def test_models_falls_back_to_allowlist_on_gateway_error(gateway):
    with TestClient(keyed_app()) as test_client:
        data = test_client.get("/api/models").json()
    assert data == {"models": Settings().allowed_models}
