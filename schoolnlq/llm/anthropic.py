"""
Anthropic LLM Provider

Implementation of BaseLLMProvider for Anthropic's Messages API.
Streaming uses the content-block-delta protocol: events are discriminated by
``type`` and only ``content_block_delta`` events carry text.
"""

import logging
from collections.abc import AsyncIterator

import anthropic
from anthropic import AsyncAnthropic

from schoolnlq.llm.base import BaseLLMProvider, ProviderKind
from schoolnlq.llm.models import (
    FinishReason,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic (Claude) LLM provider implementation.

    Uses the anthropic Python SDK; authentication goes in the x-api-key header.
    """

    kind = ProviderKind.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float = 0.1,
        max_tokens: int = 500,
        timeout: int = 30,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
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
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout), max_retries=0)

        logger.info(f"Anthropic provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using Anthropic API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        system_message, messages = self._split_messages(request)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                system=system_message or anthropic.NOT_GIVEN,
                messages=messages,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        llm_response = LLMResponse(
            content=text,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider=self.provider_name,
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using Anthropic API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        system_message, messages = self._split_messages(request)

        try:
            stream = await self.client.messages.create(
                model=self.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                system=system_message or anthropic.NOT_GIVEN,
                messages=messages,
                stream=True,
            )

            async for event in stream:
                event_type = getattr(event, "type", None)
                if event_type == "content_block_delta":
                    text = getattr(getattr(event, "delta", None), "text", None)
                    if isinstance(text, str) and text:
                        yield LLMStreamChunk(content=text)
                    else:
                        logger.debug("Skipping content_block_delta without text")
                elif event_type == "message_stop":
                    break
                # message_start, content_block_start/stop, message_delta, ping

        except anthropic.APIError as e:
            logger.error(f"Anthropic streaming error: {e}")
            raise

    async def close(self) -> None:
        await self.client.close()

    @staticmethod
    def _split_messages(request: LLMRequest) -> tuple[str | None, list[dict[str, str]]]:
        """Anthropic requires the system message outside the message list."""
        system_message = None
        messages = []
        for msg in request.messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                messages.append({"role": msg.role, "content": msg.content})
        return system_message, messages

    def _map_finish_reason(self, reason: str | None) -> FinishReason:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        else:
            return "stop"
