"""
Base LLM Provider

Abstract base class defining the interface for all generation backends.
Each provider speaks exactly one wire protocol; the set of protocols is
closed and enumerated by ProviderKind.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from enum import StrEnum

from schoolnlq.llm.models import (
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
)

logger = logging.getLogger(__name__)


class ProviderKind(StrEnum):
    """Supported generation backend wire protocols."""

    OPENAI = "openai"  # token-delta event stream
    ANTHROPIC = "anthropic"  # content-block-delta event stream
    LOCAL = "local"  # single-shot JSON completion / data: line stream


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    All providers (OpenAI, Anthropic, OpenAI-compatible) implement this
    interface so the generation backend adapter can stay protocol agnostic.

    Attributes:
        kind: Wire protocol this provider speaks
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens to generate
        timeout: Request timeout in seconds
    """

    kind: ProviderKind

    def __init__(
        self,
        temperature: float = 0.1,
        max_tokens: int = 500,
        timeout: int = 30,
    ):
        """
        Initialize base provider.

        Args:
            temperature: Default temperature for responses
            max_tokens: Default max tokens for responses
            timeout: Request timeout in seconds
        """
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.info(
            f"Initialized {self.provider_name} provider",
            extra={
                "provider": self.provider_name,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @property
    def provider_name(self) -> str:
        return self.kind.value

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            request: LLM request with messages and parameters

        Returns:
            LLMResponse with generated content and usage

        Raises:
            Exception: Provider-specific errors (API errors, timeouts, etc.)
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream a completion from the LLM.

        Yields chunks strictly in arrival order. Frames that cannot be
        decoded are skipped without discarding text already yielded.

        Args:
            request: LLM request with messages and parameters

        Yields:
            LLMStreamChunk: Chunks of generated text

        Raises:
            Exception: Provider-specific errors
        """
        pass  # pragma: no cover - abstract method

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        """
        Apply default values to request if not specified.

        Args:
            request: Original request

        Returns:
            Request with defaults applied
        """
        if request.temperature is None:
            request.temperature = self.temperature
        if request.max_tokens is None:
            request.max_tokens = self.max_tokens
        return request

    def _log_request(self, request: LLMRequest) -> None:
        """Log request details for debugging."""
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "message_count": len(request.messages),
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        """Log response details for debugging."""
        logger.debug(
            f"{self.provider_name} response",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "finish_reason": response.finish_reason,
            },
        )
