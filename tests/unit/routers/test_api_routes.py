"""
Route tests for the HTTP surface.

Tests cover:
- JWT middleware on protected and public paths
- Conversation CRUD
- Chat send as an SSE stream
- Direct tool listing and invocation errors
- Media parse-status callbacks
- Health check
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from mediachat.core.config import get_settings
from mediachat.domain.chat import MediaState, MessageRole
from mediachat.main import app
from mediachat.services.completion_client import CompletionClient
from mediachat.services.conversation_store import get_conversation_store


# ============================================================================
# FIXTURES
# ============================================================================

def make_token(sub="user-1", expires_in=timedelta(hours=1)):
    settings = get_settings()
    claims = {"sub": sub, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_conversation_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


def sse_events(body: str):
    events = []
    for line in body.splitlines():
        if line.startswith("data:"):
            events.append(json.loads(line[len("data:"):].strip()))
    return events


# ============================================================================
# AUTHENTICATION
# ============================================================================

class TestAuthMiddleware:
    """JWT validation"""

    def test_missing_token(self, client):
        response = client.get("/api/chat/conversations")

        assert response.status_code == 401
        assert response.json() == {"code": "token_missing", "message": "Authentication token required"}

    def test_expired_token(self, client):
        token = make_token(expires_in=timedelta(minutes=-5))

        response = client.get("/api/chat/conversations", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["code"] == "token_expired"

    def test_invalid_token(self, client):
        response = client.get("/api/chat/conversations", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["code"] == "token_invalid"

    def test_public_health(self, client):
        """Should serve the health check without a token"""
        with patch("mediachat.routers.health.Database.ping", new=AsyncMock(return_value=True)):
            response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["connected"] is True

    def test_degraded_health(self, client):
        with patch("mediachat.routers.health.Database.ping", new=AsyncMock(return_value=False)):
            response = client.get("/api/health")

        assert response.json()["status"] == "degraded"


# ============================================================================
# CONVERSATIONS
# ============================================================================

class TestConversations:
    """Conversation CRUD"""

    def test_create_and_list(self, client, auth_headers):
        created = client.post("/api/chat/conversations", json={"title": "Trip"}, headers=auth_headers)

        assert created.status_code == 201
        assert created.json()["title"] == "Trip"
        assert "createdAt" in created.json()

        listed = client.get("/api/chat/conversations", headers=auth_headers)
        assert [c["id"] for c in listed.json()["conversations"]] == [created.json()["id"]]

    def test_detail_includes_messages_and_media(self, client, auth_headers, store):
        conversation = store.seed_conversation("user-1")
        store.seed_message(conversation.id, MessageRole.USER, "hi")

        response = client.get(f"/api/chat/conversations/{conversation.id}", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert [m["content"] for m in body["messages"]] == ["hi"]
        assert body["media"] == []

    def test_other_users_conversation_is_not_found(self, client, auth_headers, store):
        conversation = store.seed_conversation("user-2")

        response = client.get(f"/api/chat/conversations/{conversation.id}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["type"] == "api_error"

    def test_delete(self, client, auth_headers, store):
        conversation = store.seed_conversation("user-1")

        response = client.delete(f"/api/chat/conversations/{conversation.id}", headers=auth_headers)

        assert response.status_code == 204
        assert conversation.id not in store.conversations


# ============================================================================
# CHAT SEND
# ============================================================================

class TestChatSend:
    """SSE stream"""

    def test_streams_completion(self, client, auth_headers, store):
        """Should stream chunks then a done event with the message id"""
        conversation = store.seed_conversation("user-1")

        async def fake_stream(self, messages, model=None):
            for fragment in ("Hi", "!"):
                yield fragment

        with patch.object(CompletionClient, "stream_chat_completion", fake_stream):
            response = client.post(
                "/api/chat/send",
                json={"conversationId": conversation.id, "content": "What's up today?"},
                headers=auth_headers,
            )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert "no-store" in response.headers["cache-control"]
        events = sse_events(response.text)
        assert [e["type"] for e in events] == ["chunk", "chunk", "done"]
        assert events[-1]["messageId"]
        assert len(store.messages_for(conversation.id)) == 2

    def test_unknown_conversation(self, client, auth_headers, store):
        """Should answer with a lone done event"""
        response = client.post(
            "/api/chat/send",
            json={"conversationId": "missing", "content": "hello"},
            headers=auth_headers,
        )

        assert sse_events(response.text) == [{"type": "done"}]
        assert store.messages == []

    def test_blank_content_rejected(self, client, auth_headers):
        response = client.post(
            "/api/chat/send",
            json={"conversationId": "c1", "content": "   "},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"


# ============================================================================
# TOOLS
# ============================================================================

class TestToolRoutes:
    """Direct tool access"""

    def test_list_tools_public(self, client):
        response = client.get("/api/mcp/tools")

        assert response.status_code == 200
        names = {t["name"] for t in response.json()["tools"]}
        assert {"generateImageFromText", "generateVideo", "chatWithVideos"} <= names
        tool = next(t for t in response.json()["tools"] if t["name"] == "upscaleImage")
        assert "imageURL" in tool["inputSchema"]["properties"]

    def test_unknown_tool(self, client, auth_headers):
        response = client.post("/api/mcp/tools/call", json={"name": "launchRocket", "args": {}}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown tool: launchRocket"

    def test_invalid_arguments(self, client, auth_headers):
        response = client.post(
            "/api/mcp/tools/call",
            json={"name": "upscaleImage", "args": {"imageURL": "https://example.com/a.png", "upscaleFactor": 9}},
            headers=auth_headers,
        )

        assert response.status_code == 422


# ============================================================================
# MEDIA CALLBACK
# ============================================================================

class TestMediaCallback:
    """Provider parse-status notifications"""

    @pytest.fixture
    def callback_settings(self, settings):
        callback_settings = settings.model_copy(update={"memories_callback_token": "callback-secret"})
        app.dependency_overrides[get_settings] = lambda: callback_settings
        return callback_settings

    def test_marks_media_ready(self, client, store, callback_settings):
        """Should update every row with the video number, without a user token"""
        conversation = store.seed_conversation("user-1")
        store.seed_media(conversation.id, "VI1234567", "clip.mp4")

        response = client.post(
            "/api/media/callback?token=callback-secret",
            json={"videoNo": "VI1234567", "status": "PARSE"},
        )

        assert response.status_code == 200
        assert response.json() == {"videoNo": "VI1234567", "state": "ready", "updated": 1}
        assert store.media[0].state == MediaState.READY

    @pytest.mark.parametrize("query", ["", "?token=", "?token=wrong-secret"])
    def test_rejects_bad_token(self, client, store, callback_settings, query):
        """Should answer 401 and leave media untouched without the shared token"""
        conversation = store.seed_conversation("user-1")
        store.seed_media(conversation.id, "VI1234567", "clip.mp4")

        response = client.post(
            f"/api/media/callback{query}",
            json={"videoNo": "VI1234567", "status": "PARSE"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid callback token"
        assert store.media[0].state == MediaState.PENDING

    def test_rejects_when_token_unset(self, client, store, settings):
        """Should refuse every callback while no token is configured"""
        app.dependency_overrides[get_settings] = lambda: settings

        response = client.post(
            "/api/media/callback?token=",
            json={"videoNo": "VI1234567", "status": "PARSE"},
        )

        assert response.status_code == 401

    def test_unknown_video(self, client, callback_settings):
        response = client.post(
            "/api/media/callback?token=callback-secret",
            json={"videoNo": "VI0000000", "status": "FAIL"},
        )

        assert response.json() == {"videoNo": "VI0000000", "state": "failed", "updated": 0}
