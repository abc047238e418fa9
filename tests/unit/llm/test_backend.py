"""
Tests for GenerationBackend.

Tests the provider-agnostic adapter: verbatim batch output, ordered
streaming, callback delivery and GenerationError wrapping.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from schoolnlq.errors import GenerationError
from schoolnlq.llm.backend import SQL_SYSTEM_PROMPT, GenerationBackend
from schoolnlq.llm.base import ProviderKind
from schoolnlq.llm.models import LLMResponse, LLMStreamChunk
from schoolnlq.models.query import RawGenerationText


def _provider(kind: ProviderKind = ProviderKind.OPENAI):
    provider = MagicMock()
    provider.provider_name = kind.value
    provider.generate = AsyncMock()
    provider.close = AsyncMock()
    return provider


def _stream(*parts, error: Exception | None = None):
    async def stream(request):
        for part in parts:
            yield LLMStreamChunk(content=part)
        if error is not None:
            raise error

    return stream


class TestGenerate:
    """Test batch generation."""

    @pytest.mark.asyncio
    async def test_returns_verbatim_text(self):
        """Output is wrapped, not cleaned."""
        provider = _provider()
        provider.generate.return_value = LLMResponse(
            content="```sql\nSELECT 1\n```", model="gpt-4o-mini", provider="openai"
        )
        backend = GenerationBackend(provider)

        raw = await backend.generate("prompt")

        assert raw == RawGenerationText(text="```sql\nSELECT 1\n```", provider="openai")
        request = provider.generate.await_args.args[0]
        assert request.messages[0].role == "system"
        assert request.messages[0].content == SQL_SYSTEM_PROMPT
        assert request.messages[1].content == "prompt"

    @pytest.mark.asyncio
    async def test_provider_error_wrapped(self):
        """Transport failures become GenerationError with the provider's detail."""
        provider = _provider(ProviderKind.LOCAL)
        provider.generate.side_effect = httpx.ConnectError("connection refused")
        backend = GenerationBackend(provider)

        with pytest.raises(GenerationError) as exc_info:
            await backend.generate("prompt")

        assert exc_info.value.provider == "local"
        assert exc_info.value.detail == "connection refused"
        assert exc_info.value.message == "local generation failed: connection refused"

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self):
        provider = _provider()

        async def hang(request):
            await asyncio.sleep(10)

        provider.generate.side_effect = hang
        backend = GenerationBackend(provider, timeout=0.01)

        with pytest.raises(GenerationError, match="timed out"):
            await backend.generate("prompt")


class TestStreaming:
    """Test streamed generation."""

    @pytest.mark.asyncio
    async def test_stream_text_in_order(self):
        provider = _provider()
        provider.stream = _stream("The ", "", "ratio ", "is 2:1")
        backend = GenerationBackend(provider)

        tokens = [token async for token in backend.stream_text("prompt")]

        assert tokens == ["The ", "ratio ", "is 2:1"]

    @pytest.mark.asyncio
    async def test_generate_streaming_sync_callback(self):
        provider = _provider()
        provider.stream = _stream("a", "b", "c")
        backend = GenerationBackend(provider)
        seen = []

        text = await backend.generate_streaming("prompt", seen.append)

        assert text == "abc"
        assert seen == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_generate_streaming_async_callback(self):
        provider = _provider()
        provider.stream = _stream("x", "y")
        backend = GenerationBackend(provider)
        on_token = AsyncMock()

        await backend.generate_streaming("prompt", on_token)

        assert [call.args[0] for call in on_token.await_args_list] == ["x", "y"]

    @pytest.mark.asyncio
    async def test_partial_text_stays_delivered(self):
        """Tokens before a failure are delivered, then GenerationError."""
        provider = _provider(ProviderKind.ANTHROPIC)
        provider.stream = _stream("Here ", "are", error=RuntimeError("stream reset"))
        backend = GenerationBackend(provider)
        seen = []

        with pytest.raises(GenerationError) as exc_info:
            await backend.generate_streaming("prompt", seen.append)

        assert seen == ["Here ", "are"]
        assert exc_info.value.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_stream_request_uses_stream_budget(self):
        provider = _provider()
        captured = []

        async def stream(request):
            captured.append(request)
            yield LLMStreamChunk(content="ok")

        provider.stream = stream
        backend = GenerationBackend(provider, stream_max_tokens=64)

        await backend.generate_streaming("prompt")

        assert captured[0].max_tokens == 64

    @pytest.mark.asyncio
    async def test_close_closes_provider(self):
        provider = _provider()
        backend = GenerationBackend(provider)

        await backend.close()

        provider.close.assert_awaited_once()
