"""
Engine Errors

Exception taxonomy for the query engine. Every error carries a short machine
readable code alongside the human message so API handlers and the stream
orchestrator can surface it without string parsing.
"""

from typing import Any


class NLQError(Exception):
    """
    Base exception for query engine errors.

    Attributes:
        message: Error description
        context: Additional context for debugging
    """

    code = "nlq_error"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ConfigurationError(NLQError):
    """No usable generation backend configuration (missing credentials, bad provider)."""

    code = "configuration_error"


class GenerationError(NLQError):
    """Generation backend transport, auth, or quota failure."""

    code = "generation_error"

    def __init__(self, provider: str, detail: str, context: dict[str, Any] | None = None):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} generation failed: {detail}", context)


class SQLValidationError(NLQError):
    """Generated text failed the lexical safety gate."""

    code = "sql_validation_error"

    def __init__(self, rule: str, message: str, context: dict[str, Any] | None = None):
        self.rule = rule
        super().__init__(message, context)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["rule"] = self.rule
        return payload


class SQLExecutionError(NLQError):
    """The store rejected or failed to run a validated statement."""

    code = "sql_execution_error"


class AnalysisError(NLQError):
    """A result heuristic could not be applied. Never surfaced to users."""

    code = "analysis_error"
