"""
Unit Tests for Chat Endpoints

Tests /chat, /chat/stream and /generate-sql with a mocked engine.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from schoolnlq.api.main import app, app_state
from schoolnlq.errors import GenerationError, SQLValidationError
from schoolnlq.models.api import ChatResponse
from schoolnlq.models.query import (
    DoneType,
    EventKind,
    GeneratedQuery,
    SanitizedSQL,
    StreamEvent,
)

TENANT_ID = "3a1f2d3e-4b5c-6d7e-8f90-1234567890ab"


def _parse_sse(body: str) -> list[tuple[str, dict]]:
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        fields = dict(line.split(": ", 1) for line in block.split("\n"))
        frames.append((fields["event"], json.loads(fields["data"])))
    return frames


@pytest.fixture
def engine():
    """Mock query engine."""
    return MagicMock()


@pytest.fixture
def client(engine):
    """Test client with the mocked engine installed."""
    with patch.dict(app_state, {"engine": engine}):
        yield TestClient(app)


class TestChatEndpoint:
    """Test the batch /chat endpoint."""

    def test_data_query(self, client, engine):
        engine.chat = AsyncMock(
            return_value=ChatResponse(
                response="Here are the students (1 student):",
                type="data_query",
                data=[{"first_name": "Asha"}],
                count=1,
                sql=f"SELECT first_name FROM students WHERE school_id = '{TENANT_ID}'",
            )
        )

        response = client.post(
            "/chat",
            json={
                "message": "Show all students",
                "context": {"tenant_id": TENANT_ID},
                "conversationHistory": [{"role": "user", "content": "hi"}],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "data_query"
        assert data["count"] == 1
        message, tenant, history = engine.chat.await_args.args
        assert message == "Show all students"
        assert tenant.tenant_id == TENANT_ID
        assert history[0].content == "hi"

    def test_school_id_alias(self, client, engine):
        engine.chat = AsyncMock(return_value=ChatResponse(response="Hi!", type="conversation"))

        response = client.post(
            "/chat", json={"message": "hello", "context": {"school_id": TENANT_ID}}
        )

        assert response.status_code == 200
        assert engine.chat.await_args.args[1].tenant_id == TENANT_ID

    def test_missing_context_rejected(self, client, engine):
        engine.chat = AsyncMock()

        response = client.post("/chat", json={"message": "Show all students"})

        assert response.status_code == 422
        engine.chat.assert_not_awaited()

    def test_invalid_tenant_rejected(self, client, engine):
        engine.chat = AsyncMock()

        response = client.post(
            "/chat",
            json={"message": "Show all students", "context": {"tenant_id": "x' OR '1'='1"}},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid tenant context"
        engine.chat.assert_not_awaited()

    def test_conversation_generation_error(self, client, engine):
        engine.chat = AsyncMock(side_effect=GenerationError("anthropic", "overloaded"))

        response = client.post(
            "/chat", json={"message": "thanks!", "context": {"tenant_id": TENANT_ID}}
        )

        assert response.status_code == 502
        assert response.json() == {
            "error": "generation_error",
            "message": "anthropic generation failed: overloaded",
        }

    def test_engine_not_initialized(self):
        with patch.dict(app_state, {"engine": None}):
            client = TestClient(app)
            response = client.post(
                "/chat", json={"message": "hello", "context": {"tenant_id": TENANT_ID}}
            )

        assert response.status_code == 503
        assert response.json()["detail"] == "Query engine not initialized"


class TestChatStreamEndpoint:
    """Test the SSE /chat/stream endpoint."""

    def test_stream_frames(self, client, engine):
        calls = []

        async def stream(message, tenant, history):
            calls.append((message, tenant, history))
            yield StreamEvent.thinking("Generating SQL query based on your question...")
            yield StreamEvent.sql("SELECT 1")
            yield StreamEvent(event=EventKind.DATA, data={"data": [{"n": 1}], "count": 1})
            yield StreamEvent.token("One ")
            yield StreamEvent.token("row.")
            yield StreamEvent.done(DoneType.DATA_QUERY)

        engine.stream = stream

        response = client.post(
            "/chat/stream",
            json={"message": "Count students", "context": {"tenant_id": TENANT_ID}},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

        frames = _parse_sse(response.text)
        assert [name for name, _ in frames] == ["thinking", "sql", "data", "token", "token", "done"]
        assert frames[2][1] == {"data": [{"n": 1}], "count": 1}
        assert "".join(data["token"] for name, data in frames if name == "token") == "One row."
        assert frames[-1][1] == {"type": "data_query"}

        message, tenant, history = calls[0]
        assert message == "Count students"
        assert tenant.tenant_id == TENANT_ID
        assert history == []

    def test_stream_error_frames(self, client, engine):
        async def stream(message, tenant, history):
            yield StreamEvent.thinking("Thinking...")
            yield StreamEvent.error("Internal server error", code="internal_error")
            yield StreamEvent.done(DoneType.ERROR)

        engine.stream = stream

        response = client.post(
            "/chat/stream", json={"message": "hi", "context": {"tenant_id": TENANT_ID}}
        )

        frames = _parse_sse(response.text)
        assert frames[-2] == ("error", {"message": "Internal server error", "code": "internal_error"})
        assert frames[-1] == ("done", {"type": "error"})

    def test_stream_requires_tenant(self, client, engine):
        engine.stream = MagicMock()

        response = client.post("/chat/stream", json={"message": "Show all students"})

        assert response.status_code == 422
        engine.stream.assert_not_called()


class TestGenerateSQLEndpoint:
    """Test /generate-sql."""

    def test_generate_sql(self, client, engine):
        sql = f"SELECT * FROM fees WHERE school_id = '{TENANT_ID}' AND status = 'pending'"
        engine.generate_sql = AsyncMock(
            return_value=GeneratedQuery(
                raw_text=sql,
                sanitized_sql=SanitizedSQL(sql=sql),
                description="Find students with pending fees",
                source="pattern",
            )
        )

        response = client.post(
            "/generate-sql",
            json={"query": "List pending fees", "context": {"tenant_id": TENANT_ID}},
        )

        assert response.status_code == 200
        assert response.json() == {
            "sql": sql,
            "description": "Find students with pending fees",
            "source": "pattern",
        }

    def test_rejected_sql_is_400(self, client, engine):
        engine.generate_sql = AsyncMock(
            side_effect=SQLValidationError("select_only", "Only SELECT queries are allowed")
        )

        response = client.post(
            "/generate-sql",
            json={"query": "Remove old records", "context": {"tenant_id": TENANT_ID}},
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "sql_validation_error",
            "message": "Only SELECT queries are allowed",
        }
