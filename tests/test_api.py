"""
Tests for the HTTP surface.
Config is swapped for a minimal in-memory dict; provider calls are mocked.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from parley import config as cfg_mod
from parley.errors import ProviderError, RunTimeoutError
from parley.models import ChatTurnResult, Message, ProviderTag


@pytest.fixture
def client(tmp_path):
    cfg_data = {
        "server": {"host": "127.0.0.1", "port": 8000},
        "openai": {"api_key": "sk-test", "base_url": "https://api.test/v1"},
        "assistant": {"poll_interval": 1.0, "run_timeout": 30.0},
        "webhook": {"url": ""},
        "sessions": {"sqlite_path": str(tmp_path / "sessions.db"), "sweep_interval": 60},
        "logging": {"level": "WARNING"},
    }
    orig_config = cfg_mod._config
    cfg_mod._config = cfg_data

    from parley.main import app
    try:
        with TestClient(app) as c:
            yield c
    finally:
        cfg_mod._config = orig_config


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

def test_chat_info(client):
    data = client.get("/api/chat").json()
    assert data["providers"] == ["openai-chat", "openai-assistant", "webhook"]
    assert data["configured"] == ["openai-chat", "openai-assistant"]


def test_chat_turn_success(client):
    from parley import main

    reply = Message(id="m1", role="assistant", content="hello", provider=ProviderTag.CHAT)
    main.turn_service.send_chat_turn = AsyncMock(return_value=ChatTurnResult(message=reply))

    r = client.post("/api/chat", json={"message": "hi", "provider": "openai-chat"})
    assert r.status_code == 200
    body = r.json()
    assert body["message"]["id"] == "m1"
    assert body["message"]["content"] == "hello"
    assert body["message"]["provider"] == "openai-chat"
    assert body["threadId"] is None


def test_chat_missing_message_is_400(client):
    r = client.post("/api/chat", json={"provider": "openai-chat"})
    assert r.status_code == 400
    assert r.json() == {"error": "Message is required"}


def test_chat_invalid_json_is_400(client):
    r = client.post("/api/chat", content=b"{oops", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


def test_chat_unconfigured_webhook_is_500(client):
    r = client.post("/api/chat", json={"message": "hi", "provider": "webhook"})
    assert r.status_code == 500
    assert "Webhook URL" in r.json()["error"]


def test_chat_provider_failure_is_5xx(client):
    from parley import main

    main.turn_service.send_chat_turn = AsyncMock(
        side_effect=ProviderError("HTTP 401: bad key", provider="openai-chat", stage="completion"),
    )
    r = client.post("/api/chat", json={"message": "hi", "provider": "openai-chat"})
    assert r.status_code == 502
    assert "bad key" in r.json()["error"]

    main.turn_service.send_chat_turn = AsyncMock(side_effect=RunTimeoutError("Run run_1 timed out after 30s"))
    r = client.post("/api/chat", json={"message": "hi", "provider": "openai-assistant", "assistantId": "a"})
    assert r.status_code == 504


def test_unexpected_failure_is_json_500(client):
    from parley import main

    main.turn_service.send_chat_turn = AsyncMock(side_effect=RuntimeError("boom"))
    raw = TestClient(client.app, raise_server_exceptions=False)
    r = raw.post("/api/chat", json={"message": "hi", "provider": "openai-chat"})
    assert r.status_code == 500
    assert r.json() == {"error": "boom"}


def test_assistants_endpoint(client):
    from parley import main

    provider = main.provider_router.get(ProviderTag.ASSISTANT)
    provider.list_assistants = AsyncMock(return_value=[{"id": "asst_1", "name": "Helper"}])
    r = client.get("/api/assistants")
    assert r.status_code == 200
    assert r.json()["assistants"][0]["id"] == "asst_1"


def test_models_endpoint(client):
    from parley import main

    provider = main.provider_router.get(ProviderTag.CHAT)
    provider.list_models = AsyncMock(return_value=["gpt-4o", "gpt-4o-mini"])
    assert client.get("/api/models").json() == {"models": ["gpt-4o", "gpt-4o-mini"]}


# ---------------------------------------------------------------------------
# Template import
# ---------------------------------------------------------------------------

IMPORT_BODY = {
    "documentName": "Report",
    "notes": "n",
    "mustache": "{{x}}",
    "docSchema": "{}",
    "threadId": "thread_1",
}


def test_template_import_round_trip(client):
    r = client.post("/api/template-import", json=IMPORT_BODY)
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"
    created = r.json()
    sid = created["sessionId"]

    r = client.get(f"/api/template-import/{sid}")
    assert r.status_code == 200
    session = r.json()
    assert session["id"] == sid
    assert session["data"]["documentName"] == "Report"
    assert session["data"]["threadId"] == "thread_1"
    assert session["expiresAt"] == created["expiresAt"]

    r = client.delete(f"/api/template-import/{sid}")
    assert r.json() == {"success": True, "message": "Session deleted"}

    assert client.get(f"/api/template-import/{sid}").status_code == 404
    assert client.delete(f"/api/template-import/{sid}").json()["success"] is False


def test_template_import_validation(client):
    r = client.post("/api/template-import", json={**IMPORT_BODY, "mustache": " "})
    assert r.status_code == 400
    assert r.json()["error"] == "Mustache template is required"
    assert r.headers["access-control-allow-origin"] == "*"


def test_template_import_unknown_session(client):
    r = client.get("/api/template-import/template_0_missing")
    assert r.status_code == 404
    assert r.json() == {"error": "Session not found or expired"}


def test_template_import_preflight_and_info(client):
    r = client.options("/api/template-import")
    assert r.status_code == 200
    assert "POST" in r.headers["access-control-allow-methods"]
    assert client.get("/api/template-import").json()["method"] == "POST"


def test_health(client):
    client.post("/api/template-import", json=IMPORT_BODY)
    data = client.get("/api/health").json()
    assert data["status"] == "ok"
    assert data["sessions"]["active_sessions"] == 1
    assert data["sweeper"] is True
