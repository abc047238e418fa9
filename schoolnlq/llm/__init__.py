"""
LLM Provider Module

Generation backend abstraction supporting three wire protocols: OpenAI
token-delta streams, Anthropic content-block-delta streams, and
OpenAI-compatible HTTP endpoints.

Usage:
    from schoolnlq.config import get_settings
    from schoolnlq.llm import LLMProviderFactory

    settings = get_settings()
    backend = LLMProviderFactory.create_backend(settings.llm)

    raw = await backend.generate("Which students are absent today?")
    print(raw.text)
"""

from schoolnlq.llm.anthropic import AnthropicProvider
from schoolnlq.llm.backend import GenerationBackend
from schoolnlq.llm.base import BaseLLMProvider, ProviderKind
from schoolnlq.llm.factory import LLMProviderFactory
from schoolnlq.llm.local import LocalProvider
from schoolnlq.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
)
from schoolnlq.llm.openai import OpenAIProvider

__all__ = [
    # Base classes
    "BaseLLMProvider",
    "ProviderKind",
    # Models
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMUsage",
    # Adapter and factory
    "GenerationBackend",
    "LLMProviderFactory",
    # Providers
    "OpenAIProvider",
    "AnthropicProvider",
    "LocalProvider",
]
