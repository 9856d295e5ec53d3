"""
Tests for the chat HTTP surface

The chat service is replaced by a fake that yields a fixed event sequence,
so these tests cover request validation, SSE framing, auth resolution and
rate limiting without calling the model.
"""
import json
import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from ainoc.core.auth import Authenticated, Unauthenticated
from ainoc.core.config import settings
from ainoc.main import app, run


class FakeChatService:
    def __init__(self):
        self.calls = []

    async def stream_turn(self, history, auth=None):
        self.calls.append((history, auth))
        yield {"type": "start", "model": "test-model"}
        yield {"type": "text_delta", "delta": "Hello"}
        yield {"type": "finish", "finish_reason": "stop", "documents": [], "tools_used": []}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def fake_service():
    service = FakeChatService()
    with patch("ainoc.api.chat.get_chat_service", return_value=service):
        yield service


def parse_sse(body):
    return [json.loads(frame[len("data: "):]) for frame in body.split("\n\n") if frame.startswith("data: ")]


class TestChatValidation:

    def test_empty_messages_rejected(self, client, fake_service):
        response = client.post("/api/v1/chat", json={"messages": []})

        assert response.status_code == 422
        assert fake_service.calls == []

    def test_last_message_must_be_from_user(self, client, fake_service):
        response = client.post("/api/v1/chat", json={"messages": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]})

        assert response.status_code == 422

    def test_unknown_role_rejected(self, client, fake_service):
        response = client.post("/api/v1/chat", json={"messages": [{"role": "system", "content": "hi"}]})

        assert response.status_code == 422

    def test_missing_api_key_is_503(self, client):
        with patch("ainoc.api.chat.get_chat_service", side_effect=ValueError("ANTHROPIC_API_KEY not set")):
            response = client.post("/api/v1/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 503


class TestChatStreaming:

    def test_events_are_framed_as_sse(self, client, fake_service):
        response = client.post("/api/v1/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert [event["type"] for event in events] == ["start", "text_delta", "finish"]

    def test_history_is_forwarded(self, client, fake_service):
        client.post("/api/v1/chat", json={"messages": [
            {"role": "user", "content": "top customers?"},
            {"role": "assistant", "content": "ACME."},
            {"role": "user", "content": "and last year?"},
        ]})

        history, _ = fake_service.calls[0]
        assert [msg["role"] for msg in history] == ["user", "assistant", "user"]
        assert history[-1]["content"] == "and last year?"

    def test_anonymous_request_is_unauthenticated(self, client, fake_service):
        client.post("/api/v1/chat", json={"messages": [{"role": "user", "content": "my invoices"}]})

        _, auth = fake_service.calls[0]
        assert isinstance(auth, Unauthenticated)

    def test_bearer_token_resolves_identity(self, client, fake_service, auth_secret):
        token = jwt.encode(
            {"id": "u-1", "name": "ACME TEXTILES", "email": "a@acme.example", "exp": int(time.time()) + 60},
            auth_secret,
            algorithm="HS256",
        )

        client.post(
            "/api/v1/chat",
            json={"messages": [{"role": "user", "content": "my invoices"}]},
            headers={"Authorization": f"Bearer {token}"},
        )

        _, auth = fake_service.calls[0]
        assert isinstance(auth, Authenticated)
        assert auth.identity.bill_to_party_code == "ACME TEXTILES"

    def test_rate_limit(self, client, fake_service, monkeypatch):
        monkeypatch.setattr(settings, "CHAT_RATE_LIMIT_PER_MINUTE", 1)
        body = {"messages": [{"role": "user", "content": "hi"}]}

        first = client.post("/api/v1/chat", json=body)
        second = client.post("/api/v1/chat", json=body)

        assert first.status_code == 200
        assert second.status_code == 429
        assert "Retry-After" in second.headers


class TestInfoEndpoints:

    def test_tools_listing(self, client):
        response = client.get("/api/v1/chat/tools")

        data = response.json()
        assert data["total"] == 44
        assert "get_my_invoice_pdf" in data["groups"]["user_scoped"]

    def test_chat_health(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")

        data = client.get("/api/v1/chat/health").json()

        assert data["status"] == "not_configured"
        assert data["max_steps"] == settings.CHAT_MAX_STEPS

    def test_root(self, client):
        assert client.get("/").json()["status"] == "online"

    def test_health_reports_database(self, client, mock_db):
        mock_db.cursor.fetchone.return_value = {"?column?": 1}

        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["database"]["status"] == "connected"

    def test_health_degraded_without_database(self, client, mock_db):
        mock_db.connect.side_effect = Exception("DATABASE_URL not configured")

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["database"]["error"] == "database unavailable"


class TestServerEntry:

    @patch("ainoc.main.uvicorn")
    def test_run_uses_api_settings(self, mock_uvicorn, monkeypatch):
        monkeypatch.setattr(settings, "API_HOST", "127.0.0.1")
        monkeypatch.setattr(settings, "API_PORT", 8123)
        monkeypatch.setattr(settings, "API_DEBUG", True)
        monkeypatch.setattr(settings, "LOG_LEVEL", "WARNING")

        run()

        mock_uvicorn.run.assert_called_once_with(
            "ainoc.main:app", host="127.0.0.1", port=8123, reload=True, log_level="warning"
        )
