"""
LLM Provider Factory

Factory and registry for creating the configured generation backend.
The provider kind is resolved once from configuration; requests never pick
a provider.
"""

import logging

from schoolnlq.config import LLMSettings
from schoolnlq.errors import ConfigurationError
from schoolnlq.llm.anthropic import AnthropicProvider
from schoolnlq.llm.backend import GenerationBackend
from schoolnlq.llm.base import BaseLLMProvider, ProviderKind
from schoolnlq.llm.local import LocalProvider
from schoolnlq.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """
    Factory for creating LLM provider instances.

    Handles provider selection and credential checks. Missing credentials
    fail fast with ConfigurationError instead of producing a backend that
    silently does nothing.
    """

    # Registry of available providers
    PROVIDERS: dict[ProviderKind, type[BaseLLMProvider]] = {
        ProviderKind.OPENAI: OpenAIProvider,
        ProviderKind.ANTHROPIC: AnthropicProvider,
        ProviderKind.LOCAL: LocalProvider,
    }

    @staticmethod
    def resolve_kind(value: str | ProviderKind) -> ProviderKind:
        """
        Resolve a configured provider name to a ProviderKind.

        Raises:
            ConfigurationError: If the name is not a supported provider
        """
        try:
            return ProviderKind(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown provider type: {value}. "
                f"Available providers: {[kind.value for kind in ProviderKind]}"
            ) from e

    @staticmethod
    def create_provider(kind: str | ProviderKind, config: LLMSettings) -> BaseLLMProvider:
        """
        Create an LLM provider instance.

        Args:
            kind: Provider kind to create
            config: LLM configuration settings

        Returns:
            Configured provider instance

        Raises:
            ConfigurationError: If provider kind is unknown or credentials are missing
        """
        kind = LLMProviderFactory.resolve_kind(kind)

        logger.info(f"Creating {kind.value} provider", extra={"provider": kind.value})

        if kind is ProviderKind.OPENAI:
            return LLMProviderFactory._create_openai(config)
        elif kind is ProviderKind.ANTHROPIC:
            return LLMProviderFactory._create_anthropic(config)
        return LLMProviderFactory._create_local(config)

    @staticmethod
    def create_backend(config: LLMSettings) -> GenerationBackend:
        """Create the generation backend adapter for the configured provider."""
        provider = LLMProviderFactory.create_provider(config.provider, config)
        return GenerationBackend(
            provider,
            stream_max_tokens=config.stream_max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_openai(config: LLMSettings) -> OpenAIProvider:
        """Create OpenAI provider instance."""
        if not config.openai_api_key:
            raise ConfigurationError(
                "OpenAI API key is required but not configured. Set LLM_OPENAI_API_KEY"
            )

        return OpenAIProvider(
            api_key=config.openai_api_key,
            model=config.openai_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_anthropic(config: LLMSettings) -> AnthropicProvider:
        """Create Anthropic provider instance."""
        if not config.anthropic_api_key:
            raise ConfigurationError(
                "Anthropic API key is required but not configured. Set LLM_ANTHROPIC_API_KEY"
            )

        return AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=config.anthropic_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_local(config: LLMSettings) -> LocalProvider:
        """Create OpenAI-compatible provider instance."""
        return LocalProvider(
            base_url=config.local_base_url,
            model=config.local_model,
            api_key=config.local_api_key,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )
