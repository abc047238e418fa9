"""
OpenAI LLM Provider

Implementation of BaseLLMProvider for OpenAI chat completions.
Streaming uses the token-delta protocol: every event carries
``choices[0].delta.content``.
"""

import logging
from collections.abc import AsyncIterator

import openai
from openai import AsyncOpenAI

from schoolnlq.llm.base import BaseLLMProvider, ProviderKind
from schoolnlq.llm.models import (
    FinishReason,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI LLM provider implementation.

    Uses the official openai Python SDK with async support and bearer-token auth.
    """

    kind = ProviderKind.OPENAI

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 500,
        timeout: int = 30,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default model to use
            temperature: Default temperature
            max_tokens: Default max tokens
            timeout: Request timeout
        """
        super().__init__(
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=float(timeout),
            max_retries=0,
        )

        logger.info(f"OpenAI provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using OpenAI API.

        Raises:
            openai.APIError: On API errors
            openai.APITimeoutError: On timeout
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            messages = [{"role": msg.role, "content": msg.content} for msg in request.messages]

            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )

            choice = response.choices[0] if response.choices else None
            usage = response.usage
            llm_response = LLMResponse(
                content=(choice.message.content if choice else None) or "",
                model=response.model,
                usage=LLMUsage(
                    prompt_tokens=usage.prompt_tokens if usage else 0,
                    completion_tokens=usage.completion_tokens if usage else 0,
                ),
                finish_reason=self._map_finish_reason(choice.finish_reason if choice else None),
                provider=self.provider_name,
            )

            self._log_response(llm_response)
            return llm_response

        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream completion using OpenAI API.

        Chunks without choices (usage frames) or without delta text are skipped.

        Raises:
            openai.APIError: On API errors
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            messages = [{"role": msg.role, "content": msg.content} for msg in request.messages]

            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                stream=True,
            )

            async for chunk in stream:
                try:
                    choice = chunk.choices[0]
                    content = choice.delta.content
                except (AttributeError, IndexError, TypeError):
                    logger.debug("Skipping malformed OpenAI stream chunk")
                    continue
                if content:
                    yield LLMStreamChunk(content=content)

        except openai.APIError as e:
            logger.error(f"OpenAI streaming error: {e}")
            raise

    async def close(self) -> None:
        await self.client.close()

    def _map_finish_reason(self, reason: str | None) -> FinishReason:
        """Map OpenAI finish reason to our standard format."""
        if reason == "length":
            return "length"
        elif reason == "content_filter":
            return "content_filter"
        else:
            return "stop"
