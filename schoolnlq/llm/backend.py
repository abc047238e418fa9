"""
Generation Backend Adapter

Provider-agnostic facade with the two capabilities the engine needs:

    generate(prompt) -> RawGenerationText
    stream_text(prompt) -> AsyncIterator[str]

``generate_streaming(prompt, on_token)`` is the callback flavour built on top
of ``stream_text``. Every provider or transport failure surfaces as
GenerationError carrying the provider's detail; no default SQL is ever
substituted.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from schoolnlq.errors import GenerationError
from schoolnlq.llm.base import BaseLLMProvider
from schoolnlq.llm.models import LLMMessage, LLMRequest
from schoolnlq.models.query import RawGenerationText

logger = logging.getLogger(__name__)

SQL_SYSTEM_PROMPT = "You are a SQL query generator. Return only valid PostgreSQL SELECT queries."
ASSISTANT_SYSTEM_PROMPT = (
    "You are a helpful assistant for a School ERP system. "
    "Answer concisely and never invent data you were not given."
)

TokenCallback = Callable[[str], Awaitable[None] | None]


def _error_detail(exc: BaseException) -> str:
    detail = getattr(exc, "message", None) or str(exc)
    return detail or exc.__class__.__name__


class GenerationBackend:
    """
    Adapter over a single configured LLM provider.

    Attributes:
        provider: Provider speaking one of the supported wire protocols
        stream_max_tokens: Token budget for streamed narration/conversation
        timeout: Upper bound in seconds for a batch generation call
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        stream_max_tokens: int = 1024,
        timeout: float = 30,
    ):
        self.provider = provider
        self.stream_max_tokens = stream_max_tokens
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        return self.provider.provider_name

    async def generate(self, prompt: str, system: str = SQL_SYSTEM_PROMPT) -> RawGenerationText:
        """
        Run a batch completion and return the model's text verbatim.

        Raises:
            GenerationError: On transport, auth, quota, or timeout failures
        """
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content=system),
                LLMMessage(role="user", content=prompt),
            ]
        )
        try:
            response = await asyncio.wait_for(self.provider.generate(request), self.timeout)
        except GenerationError:
            raise
        except TimeoutError as e:
            raise GenerationError(
                self.provider_name, f"timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"Generation failed on {self.provider_name}: {e}")
            raise GenerationError(self.provider_name, _error_detail(e)) from e

        return RawGenerationText(text=response.content, provider=self.provider_name)

    async def stream_text(
        self, prompt: str, system: str = ASSISTANT_SYSTEM_PROMPT
    ) -> AsyncIterator[str]:
        """
        Stream partial text strictly in arrival order.

        Raises:
            GenerationError: If the stream cannot be opened or breaks mid-way
        """
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content=system),
                LLMMessage(role="user", content=prompt),
            ],
            max_tokens=self.stream_max_tokens,
        )
        try:
            async for chunk in self.provider.stream(request):
                if chunk.content:
                    yield chunk.content
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Streaming failed on {self.provider_name}: {e}")
            raise GenerationError(self.provider_name, _error_detail(e)) from e

    async def generate_streaming(
        self,
        prompt: str,
        on_token: TokenCallback | None = None,
        system: str = ASSISTANT_SYSTEM_PROMPT,
    ) -> str:
        """
        Stream a completion, invoking ``on_token`` per chunk, and return the full text.

        Raises:
            GenerationError: If streaming fails; text delivered so far stays delivered
        """
        parts: list[str] = []
        async for token in self.stream_text(prompt, system=system):
            parts.append(token)
            if on_token is not None:
                result = on_token(token)
                if inspect.isawaitable(result):
                    await result
        return "".join(parts)

    async def close(self) -> None:
        await self.provider.close()
