"""
Tests for LocalProvider.

Uses httpx.MockTransport so the wire format is exercised end to end.
"""

import json

import httpx
import pytest

from schoolnlq.llm.local import LocalProvider
from schoolnlq.llm.models import LLMMessage, LLMRequest


def _request() -> LLMRequest:
    return LLMRequest(
        messages=[
            LLMMessage(role="system", content="You are a SQL query generator."),
            LLMMessage(role="user", content="List students"),
        ]
    )


def _provider(handler, api_key: str | None = None) -> LocalProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LocalProvider(base_url="http://llm.test", api_key=api_key, client=client)


class TestGenerate:
    """Test single-shot completions."""

    @pytest.mark.asyncio
    async def test_chat_completion_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["payload"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "llama3",
                    "choices": [{"message": {"content": "SELECT 1"}}],
                    "usage": {"prompt_tokens": 12, "completion_tokens": 3},
                },
            )

        provider = _provider(handler, api_key="secret")

        response = await provider.generate(_request())

        assert response.content == "SELECT 1"
        assert response.model == "llama3"
        assert response.usage.total_tokens == 15
        assert response.provider == "local"
        assert seen["url"] == "http://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer secret"
        assert seen["payload"]["messages"][1] == {"role": "user", "content": "List students"}
        assert seen["payload"]["temperature"] == 0.1
        assert "stream" not in seen["payload"]

    @pytest.mark.asyncio
    async def test_block_shaped_body(self):
        """Servers answering with content blocks are read too."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"content": [{"type": "text", "text": "SELECT 2"}]})

        provider = _provider(handler)

        response = await provider.generate(_request())

        assert response.content == "SELECT 2"
        assert response.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_error_carries_provider_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "invalid api key"}})

        provider = _provider(handler)

        with pytest.raises(httpx.HTTPStatusError, match="401 invalid api key"):
            await provider.generate(_request())


class TestStream:
    """Test data: line streaming."""

    @pytest.mark.asyncio
    async def test_skips_malformed_frames(self):
        body = (
            'data: {"choices": [{"delta": {"content": "There "}}]}\n\n'
            ": keep-alive\n\n"
            "data: {not json\n\n"
            'data: {"choices": [{"delta": {}}]}\n\n'
            'data: {"choices": [{"delta": {"content": "are 3 students."}}]}\n\n'
            "data: [DONE]\n\n"
            'data: {"choices": [{"delta": {"content": "ignored"}}]}\n\n'
        )
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, content=body.encode())

        provider = _provider(handler)

        chunks = [chunk.content async for chunk in provider.stream(_request())]

        assert chunks == ["There ", "are 3 students."]
        assert seen["payload"]["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"error": "model loading"})

        provider = _provider(handler)

        with pytest.raises(httpx.HTTPStatusError, match="503 model loading"):
            async for _ in provider.stream(_request()):
                pass


def test_full_completions_url_kept():
    provider = LocalProvider(base_url="http://gateway.test/openai/v1/chat/completions")

    assert provider.url == "http://gateway.test/openai/v1/chat/completions"
