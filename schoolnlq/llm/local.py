"""
Local LLM Provider

Implementation of BaseLLMProvider for OpenAI-compatible HTTP endpoints
(Ollama, vLLM, llama.cpp server, self-hosted gateways).

Batch requests use a single-shot JSON completion. Streaming reads
``data:``-prefixed lines; undecodable frames are skipped.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from schoolnlq.llm.base import BaseLLMProvider, ProviderKind
from schoolnlq.llm.models import (
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
)

logger = logging.getLogger(__name__)

COMPLETIONS_PATH = "/v1/chat/completions"


class LocalProvider(BaseLLMProvider):
    """
    OpenAI-compatible LLM provider implementation.

    Talks plain HTTP through httpx so that any server exposing the chat
    completions route works, with or without a bearer token.
    """

    kind = ProviderKind.LOCAL

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 500,
        timeout: int = 30,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize local provider.

        Args:
            base_url: Server base URL, or the full chat completions URL
            model: Model name sent in the payload
            api_key: Optional bearer token
            temperature: Default temperature
            max_tokens: Default max tokens
            timeout: Request timeout
            client: Pre-built httpx client (tests inject a MockTransport)
        """
        super().__init__(
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        base_url = base_url.rstrip("/")
        self.url = base_url if base_url.endswith("/chat/completions") else base_url + COMPLETIONS_PATH
        self.model = model

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = client or httpx.AsyncClient(timeout=float(timeout))
        self.headers = headers

        logger.info(
            f"Local provider initialized: {self.url} with model: {model}",
            extra={"url": self.url, "model": model},
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion with a single-shot JSON request."""
        request = self._apply_defaults(request)
        self._log_request(request)

        response = await self.client.post(
            self.url,
            json=self._build_payload(request, stream=False),
            headers=self.headers,
        )
        await self._raise_for_status(response)
        body = response.json()

        usage = body.get("usage") or {}
        llm_response = LLMResponse(
            content=self._extract_text(body),
            model=body.get("model") or self.model,
            usage=LLMUsage(
                prompt_tokens=usage.get("prompt_tokens", 0) or 0,
                completion_tokens=usage.get("completion_tokens", 0) or 0,
            ),
            provider=self.provider_name,
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion from ``data:`` lines."""
        request = self._apply_defaults(request)
        self._log_request(request)

        async with self.client.stream(
            "POST",
            self.url,
            json=self._build_payload(request, stream=True),
            headers=self.headers,
        ) as response:
            await self._raise_for_status(response)
            async for line in response.aiter_lines():
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data:
                    continue
                if data == "[DONE]":
                    break
                try:
                    frame = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed stream frame: {data[:80]}")
                    continue
                content = self._extract_delta(frame)
                if content:
                    yield LLMStreamChunk(content=content)

    async def close(self) -> None:
        await self.client.aclose()

    def _build_payload(self, request: LLMRequest, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    @staticmethod
    def _extract_text(body: dict[str, Any]) -> str:
        """Read completion text from an OpenAI- or block-shaped JSON body."""
        choices = body.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") or {}
            if isinstance(message.get("content"), str):
                return message["content"]
        content = body.get("content")
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict) and isinstance(first.get("text"), str):
                return first["text"]
        if isinstance(content, str):
            return content
        return ""

    @staticmethod
    def _extract_delta(frame: Any) -> str:
        if not isinstance(frame, dict):
            return ""
        choices = frame.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            delta = choices[0].get("delta") or {}
            if isinstance(delta, dict) and isinstance(delta.get("content"), str):
                return delta["content"]
        content = frame.get("content")
        return content if isinstance(content, str) else ""

    async def _raise_for_status(self, response: httpx.Response) -> None:
        """Raise with the provider's own error message when the call failed."""
        if response.is_success:
            return
        await response.aread()
        detail = response.reason_phrase or "LLM API error"
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                detail = str(error["message"])
            elif isinstance(error, str):
                detail = error
        logger.error(f"Local LLM endpoint returned {response.status_code}: {detail}")
        raise httpx.HTTPStatusError(
            f"{response.status_code} {detail}",
            request=response.request,
            response=response,
        )
