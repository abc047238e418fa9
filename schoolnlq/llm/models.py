"""
Provider wire models.

What the generation backend hands to a provider and what it gets back. Raw
text only; cleaning and validation happen in the engine.
"""

from typing import Literal

from pydantic import BaseModel, Field

FinishReason = Literal["stop", "length", "content_filter", "error"]


class LLMMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(..., min_length=1)


class LLMRequest(BaseModel):
    """System + user messages; unset sampling options take the provider's defaults."""

    messages: list[LLMMessage] = Field(..., min_length=1)
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, gt=0)


class LLMUsage(BaseModel):
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMResponse(BaseModel):
    """Batch completion. ``provider`` is openai, anthropic or local."""

    content: str
    model: str
    provider: str
    usage: LLMUsage = Field(default_factory=LLMUsage)
    finish_reason: FinishReason = "stop"


class LLMStreamChunk(BaseModel):
    content: str
