"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from schoolnlq.config import get_settings

    settings = get_settings()
    print(settings.llm.provider)
    print(settings.engine.inline_row_limit)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Generation backend configuration."""

    # Provider selection
    provider: Literal["openai", "anthropic", "local"] = Field(
        default="openai", description="Generation backend wire protocol"
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(
        None,
        description="OpenAI API key",
        min_length=20,
    )
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI chat model")

    # Anthropic configuration
    anthropic_api_key: str | None = Field(
        None,
        description="Anthropic API key",
        min_length=20,
    )
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Anthropic messages model"
    )

    # OpenAI-compatible endpoint configuration (Ollama, vLLM, self-hosted gateways)
    local_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL for an OpenAI-compatible completion server",
    )
    local_api_key: str | None = Field(
        None,
        description="Optional bearer token for the compatible endpoint",
    )
    local_model: str = Field(default="gpt-4o-mini", description="Model name sent to the endpoint")

    # Common settings
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Temperature for SQL generation (low = deterministic)",
    )
    max_tokens: int = Field(
        default=500,
        gt=0,
        le=16000,
        description="Maximum tokens per SQL generation",
    )
    stream_max_tokens: int = Field(
        default=1024,
        gt=0,
        le=16000,
        description="Maximum tokens for streamed narration and conversation",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Provider request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v

    @field_validator("local_base_url")
    @classmethod
    def validate_local_base_url(cls, v: str) -> str:
        """Require an http(s) URL for the compatible endpoint."""
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ValueError("LLM_LOCAL_BASE_URL must be an http(s) URL with a host.")
        return v.rstrip("/")


class DatabaseSettings(BaseSettings):
    """School ERP store configuration (consumed read-only)."""

    url: AnyUrl | None = Field(
        None,
        description="PostgreSQL connection URL for the school ERP database",
    )
    pool_size: int = Field(
        default=5,
        gt=0,
        le=20,
        description="Database connection pool size",
    )
    statement_timeout: int = Field(
        default=30,
        gt=0,
        description="Per-statement timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | AnyUrl | None) -> str | AnyUrl | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: AnyUrl | None) -> AnyUrl | None:
        """Validate supported database URL schemes."""
        if v is None:
            return v
        parsed = urlparse(str(v))
        scheme = parsed.scheme.split("+")[0].lower() if parsed.scheme else ""
        if scheme not in {"postgres", "postgresql"}:
            raise ValueError("DATABASE_URL must use the postgresql scheme.")
        if not parsed.hostname:
            raise ValueError("DATABASE_URL must include a host.")
        return v


class EngineSettings(BaseSettings):
    """Query engine behavior settings."""

    inline_row_limit: int = Field(
        default=100,
        ge=0,
        description=(
            "Largest result set sent inline in the SSE data event. "
            "Bigger results are sent as a reference to re-fetch via /execute-sql."
        ),
    )
    example_cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="Lifetime of sampled example values before a refresh.",
    )
    history_turns: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Most recent conversation turns included in prompts.",
    )
    token_fallback_delay_ms: int = Field(
        default=30,
        ge=0,
        le=1000,
        description="Delay between words when narration falls back to local tokens.",
    )
    llm_enabled: bool = Field(
        default=True,
        description="Use the generation backend. When false only pattern fallback runs.",
    )
    pattern_fallback_enabled: bool = Field(
        default=True,
        description="Use the regex pattern table when the generation backend fails outright.",
    )
    keyword_match: Literal["substring", "token"] = Field(
        default="substring",
        description=(
            "Denylist match mode. 'substring' rejects any occurrence (also inside "
            "identifiers such as update_count); 'token' only matches whole words."
        ),
    )
    request_timeout_seconds: int = Field(
        default=120,
        gt=0,
        description="Overall budget for one /chat or /chat/stream request.",
    )

    model_config = SettingsConfigDict(
        env_prefix="ENGINE_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, database, engine, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        API_HOST: API server host
        API_PORT: API server port
        LLM_*: Generation backend configuration (see LLMSettings)
        DATABASE_*: Store configuration (see DatabaseSettings)
        ENGINE_*: Query engine behavior (see EngineSettings)
        LOG_*: Logging configuration (see LoggingSettings)
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="SchoolNLQ",
        description="Application name",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=3006,
        gt=0,
        le=65535,
        description="API server port",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def model_post_init(self, __context) -> None:
        """Configure logging and log configuration on initialization."""
        self.logging.configure()
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.provider,
                "llm_enabled": self.engine.llm_enabled,
                "inline_row_limit": self.engine.inline_row_limit,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("SCHOOLNLQ_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
