"""
Query Engine Orchestrator

Sequences one request through the engine and emits the streaming protocol:

    thinking -> sql -> data -> token* -> done          (needs_data)
    thinking -> token* -> done                         (conversational)

Request flow:
- Classify the message lexically (needs_data | conversational)
- Build the SQL prompt, generate, validate (pattern fallback when the
  backend is disabled or fails outright)
- Execute, pick the delivery strategy, analyze and summarize
- Narrate the summary token by token (word-by-word fallback when the
  streaming call fails before producing anything)

Every path ends with exactly one ``done`` event and nothing is emitted after
it. Uncaught exceptions become ``error`` followed by ``done(type=error)``.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

from schoolnlq.config import Settings, get_settings
from schoolnlq.connectors.base import BaseConnector
from schoolnlq.connectors.postgres import PostgresConnector
from schoolnlq.engine.analyzer import ResultAnalyzer
from schoolnlq.engine.classifier import Route, classify
from schoolnlq.engine.executor import QueryExecutor
from schoolnlq.engine.pattern_fallback import PatternFallbackGenerator
from schoolnlq.engine.prompt_builder import PromptBuilder
from schoolnlq.engine.validator import SQLValidator
from schoolnlq.errors import (
    AnalysisError,
    ConfigurationError,
    GenerationError,
    NLQError,
    SQLExecutionError,
    SQLValidationError,
)
from schoolnlq.llm.backend import ASSISTANT_SYSTEM_PROMPT, GenerationBackend
from schoolnlq.llm.factory import LLMProviderFactory
from schoolnlq.models.api import ChatResponse
from schoolnlq.models.query import (
    ConversationTurn,
    DoneType,
    EventKind,
    ExecutionResult,
    GeneratedQuery,
    StreamEvent,
    TenantContext,
)
from schoolnlq.schema.context import SchemaContext, get_schema_context
from schoolnlq.schema.examples import ExampleValueCache

logger = logging.getLogger(__name__)

UNDERSTAND_ERROR = "I couldn't understand your query. Please try rephrasing it."
TIMEOUT_MESSAGE = "The request took too long to complete."


class QueryEngine:
    """
    Natural-language-to-SQL engine.

    Args:
        prompt_builder: Builds SQL, conversational and formatting prompts
        validator: Lexical SQL safety gate
        executor: Read-only query executor
        analyzer: Result heuristics and summaries
        backend: Generation backend, or None when disabled/unconfigured
        fallback: Pattern table used when generation fails outright
        token_delay_ms: Delay between words in the local narration fallback
        request_timeout: Overall budget for one chat or streamed request (seconds)
        backend_error: Why the backend is missing, raised when no fallback applies
    """

    def __init__(
        self,
        prompt_builder: PromptBuilder,
        validator: SQLValidator,
        executor: QueryExecutor,
        analyzer: ResultAnalyzer | None = None,
        backend: GenerationBackend | None = None,
        fallback: PatternFallbackGenerator | None = None,
        token_delay_ms: int = 30,
        request_timeout: float | None = None,
        backend_error: ConfigurationError | None = None,
    ):
        self.prompt_builder = prompt_builder
        self.validator = validator
        self.executor = executor
        self.analyzer = analyzer or ResultAnalyzer()
        self.backend = backend
        self.fallback = fallback
        self.token_delay_ms = token_delay_ms
        self.request_timeout = request_timeout
        self.backend_error = backend_error

    # ========================================================================
    # Generation
    # ========================================================================

    async def generate_query(
        self,
        question: str,
        tenant: TenantContext,
        history: Sequence[ConversationTurn] | None = None,
    ) -> GeneratedQuery:
        """
        Produce a validated, tenant-scoped query for a question.

        Raises:
            SQLValidationError: Generated text failed the safety gate (never retried)
            GenerationError: Backend failed and no fallback pattern matched
            ConfigurationError: No backend and no fallback pattern matched
        """
        if self.backend is None:
            error = self.backend_error or ConfigurationError("Generation backend is disabled")
            return self._fallback_or_raise(question, tenant, error)

        prompt = await self.prompt_builder.build_sql_prompt(question, history)
        try:
            raw = await self.backend.generate(prompt)
        except GenerationError as e:
            logger.warning(f"Generation failed, trying pattern fallback: {e.message}")
            return self._fallback_or_raise(question, tenant, e)

        if not SQLValidator.strip_formatting(raw.text):
            error = GenerationError(raw.provider, "empty response")
            return self._fallback_or_raise(question, tenant, error)

        sanitized = self.validator.validate(raw, tenant)
        logger.info("Generated SQL passed validation", extra={"tenant_id": tenant.tenant_id})
        return GeneratedQuery(
            raw_text=raw.text,
            sanitized_sql=sanitized,
            description=f"Generated SQL for: {question}",
            source="llm",
        )

    def _fallback_or_raise(
        self, question: str, tenant: TenantContext, error: NLQError
    ) -> GeneratedQuery:
        if self.fallback is not None:
            query = self.fallback.generate(question, tenant)
            if query is not None:
                return query
        raise error

    # ========================================================================
    # Streaming
    # ========================================================================

    async def stream(
        self,
        message: str,
        tenant: TenantContext,
        history: Sequence[ConversationTurn] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run one request and yield its stream events.

        Guarantees exactly one terminal ``done`` event, even when a stage
        raises or the request exceeds its time budget.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.request_timeout if self.request_timeout else None
        events = self._run_stream(message, tenant, history)

        async with aclosing(events):
            while True:
                try:
                    if deadline is None:
                        event = await anext(events)
                    else:
                        remaining = max(deadline - loop.time(), 0.001)
                        event = await asyncio.wait_for(anext(events), remaining)
                except StopAsyncIteration:
                    break
                except TimeoutError:
                    logger.error(f"Request exceeded {self.request_timeout}s budget")
                    yield StreamEvent.error(TIMEOUT_MESSAGE, code="timeout")
                    yield StreamEvent.done(DoneType.ERROR)
                    return
                except Exception as e:
                    logger.exception(f"Stream pipeline failed: {e}")
                    yield StreamEvent.error(self._user_message(e), code=self._error_code(e))
                    yield StreamEvent.done(DoneType.ERROR)
                    return

                yield event
                if event.event is EventKind.DONE:
                    return

        logger.error("Stream ended without a terminal event")
        yield StreamEvent.error("Internal server error", code="internal_error")
        yield StreamEvent.done(DoneType.ERROR)

    async def _run_stream(
        self,
        message: str,
        tenant: TenantContext,
        history: Sequence[ConversationTurn] | None,
    ) -> AsyncIterator[StreamEvent]:
        route = classify(message)
        logger.info(f"Routing message to {route.value}", extra={"tenant_id": tenant.tenant_id})

        if route is Route.CONVERSATIONAL:
            async for event in self._conversation_events(message, history):
                yield event
            return

        yield StreamEvent.thinking("Analyzing your query and understanding what data you need...")
        yield StreamEvent.thinking("Generating SQL query based on your question...")

        try:
            query = await self.generate_query(message, tenant, history)
        except SQLValidationError as e:
            logger.warning(f"Generated SQL rejected ({e.rule}): {e.message}")
            yield StreamEvent.error(f"{UNDERSTAND_ERROR} ({e.message})", code=e.code)
            yield StreamEvent.done(DoneType.ERROR)
            return
        except (GenerationError, ConfigurationError) as e:
            yield StreamEvent.error(e.message, code=e.code)
            yield StreamEvent.done(DoneType.ERROR)
            return

        yield StreamEvent.sql(query.sql)
        yield StreamEvent.thinking("Executing query and fetching data...")

        try:
            result = await self.executor.execute(query.sanitized_sql)
        except SQLExecutionError as e:
            yield StreamEvent.error(f"Error executing query: {e.message}", code=e.code)
            yield StreamEvent.done(DoneType.ERROR)
            return

        yield StreamEvent(event=EventKind.DATA, data=self.executor.data_payload(result))
        yield StreamEvent.thinking("Formatting results...")

        summary = self._summarize(message, result)
        prompt = self.prompt_builder.build_formatting_prompt(summary)
        async with aclosing(self._narrate(prompt, summary)) as tokens:
            async for token in tokens:
                yield StreamEvent.token(token)

        yield StreamEvent.done(DoneType.DATA_QUERY)

    async def _conversation_events(
        self, message: str, history: Sequence[ConversationTurn] | None
    ) -> AsyncIterator[StreamEvent]:
        yield StreamEvent.thinking("Thinking...")

        if self.backend is None:
            async with aclosing(self._word_tokens(self.prompt_builder.help_text())) as words:
                async for word in words:
                    yield StreamEvent.token(word)
            yield StreamEvent.done(DoneType.CONVERSATION)
            return

        prompt = await self.prompt_builder.build_conversational_prompt(message, history)
        try:
            async with aclosing(self.backend.stream_text(prompt)) as tokens:
                async for token in tokens:
                    yield StreamEvent.token(token)
        except GenerationError as e:
            yield StreamEvent.error(e.message, code=e.code)
            yield StreamEvent.done(DoneType.ERROR)
            return

        yield StreamEvent.done(DoneType.CONVERSATION)

    async def _narrate(self, prompt: str, fallback_text: str) -> AsyncIterator[str]:
        """Stream narration, falling back to local word tokens if nothing arrives."""
        emitted = False
        if self.backend is not None:
            try:
                async with aclosing(self.backend.stream_text(prompt)) as tokens:
                    async for token in tokens:
                        emitted = True
                        yield token
            except GenerationError as e:
                if emitted:
                    logger.warning(f"Narration stream broke after partial output: {e.message}")
                    return
                logger.warning(f"Narration stream failed, using local tokens: {e.message}")

        if not emitted:
            async with aclosing(self._word_tokens(fallback_text)) as words:
                async for word in words:
                    yield word

    async def _word_tokens(self, text: str) -> AsyncIterator[str]:
        words = text.split(" ")
        delay = self.token_delay_ms / 1000
        for index, word in enumerate(words):
            await asyncio.sleep(delay)
            yield word + (" " if index < len(words) - 1 else "")

    # ========================================================================
    # Batch operations
    # ========================================================================

    async def chat(
        self,
        message: str,
        tenant: TenantContext,
        history: Sequence[ConversationTurn] | None = None,
    ) -> ChatResponse:
        """
        Non-streaming chat. Data answers carry every row regardless of size.
        A request over the time budget answers with an error response.

        Raises:
            GenerationError: If the conversational call fails
        """
        if not self.request_timeout:
            return await self._chat(message, tenant, history)
        try:
            return await asyncio.wait_for(
                self._chat(message, tenant, history), self.request_timeout
            )
        except TimeoutError:
            logger.error(f"Chat request exceeded {self.request_timeout}s budget")
            return ChatResponse(response=TIMEOUT_MESSAGE, type="error")

    async def _chat(
        self,
        message: str,
        tenant: TenantContext,
        history: Sequence[ConversationTurn] | None,
    ) -> ChatResponse:
        if classify(message) is Route.CONVERSATIONAL:
            if self.backend is None:
                return ChatResponse(response=self.prompt_builder.help_text(), type="conversation")
            prompt = await self.prompt_builder.build_conversational_prompt(message, history)
            raw = await self.backend.generate(prompt, system=ASSISTANT_SYSTEM_PROMPT)
            return ChatResponse(response=raw.text.strip(), type="conversation")

        try:
            query = await self.generate_query(message, tenant, history)
        except (SQLValidationError, GenerationError, ConfigurationError) as e:
            logger.warning(f"Could not produce SQL for chat request: {e.message}")
            return ChatResponse(response=UNDERSTAND_ERROR, type="error")

        try:
            result = await self.executor.execute(query.sanitized_sql)
        except SQLExecutionError as e:
            return ChatResponse(response=f"Error executing query: {e.message}", type="error")

        return ChatResponse(
            response=self._summarize(message, result),
            type="data_query",
            data=result.rows,
            count=result.row_count,
            sql=result.sql,
        )

    async def generate_sql(self, question: str, tenant: TenantContext) -> GeneratedQuery:
        """Synthesize and validate SQL without executing it."""
        return await self.generate_query(question, tenant)

    async def execute_sql(self, sql: str) -> ExecutionResult:
        """
        Validate and run caller-supplied SQL (re-fetch of large results).

        Raises:
            SQLValidationError: If the statement fails the safety gate
            SQLExecutionError: If the store fails
        """
        sanitized = self.validator.validate_statement(sql)
        return await self.executor.execute(sanitized)

    async def close(self) -> None:
        if self.backend is not None:
            await self.backend.close()
        if self.executor.connector is not None:
            await self.executor.connector.close()

    def _summarize(self, message: str, result: ExecutionResult) -> str:
        try:
            analysis = self.analyzer.analyze(message, result.rows)
            summary = self.analyzer.summarize(message, result.rows, analysis)
        except Exception as e:
            error = AnalysisError(f"Summary failed: {e}", {"question": message[:100]})
            logger.warning(f"Analysis skipped: {error.message}", extra=error.context)
            summary = None
        return summary or f"Found {result.row_count} results"

    @staticmethod
    def _user_message(error: Exception) -> str:
        if isinstance(error, NLQError):
            return error.message
        return "Internal server error"

    @staticmethod
    def _error_code(error: Exception) -> str:
        if isinstance(error, NLQError):
            return error.code
        return "internal_error"


async def create_engine(
    settings: Settings | None = None,
    connector: BaseConnector | None = None,
    backend: GenerationBackend | None = None,
    schema: SchemaContext | None = None,
) -> QueryEngine:
    """
    Create a QueryEngine with all dependencies initialized.

    Args:
        settings: Application settings (cached settings if not provided)
        connector: Store connector (built from DATABASE_URL if not provided)
        backend: Generation backend (built from LLM_* settings if not provided)
        schema: Schema context (bundled schema if not provided)

    Raises:
        ConfigurationError: If the backend cannot be built and fallback is disabled
        ConnectionError: If the database is configured but unreachable
    """
    config = settings or get_settings()

    if connector is None and config.database.url:
        connector = PostgresConnector(
            url=str(config.database.url),
            pool_size=config.database.pool_size,
            timeout=config.database.statement_timeout,
        )
        await connector.connect()
    elif connector is None:
        logger.warning("DATABASE_URL not set; queries will fail until it is configured")

    backend_error: ConfigurationError | None = None
    if backend is None and config.engine.llm_enabled:
        try:
            backend = LLMProviderFactory.create_backend(config.llm)
        except ConfigurationError as e:
            if not config.engine.pattern_fallback_enabled:
                raise
            logger.error(f"Generation backend unavailable, running on pattern fallback: {e}")
            backend_error = e

    validator = SQLValidator(keyword_match=config.engine.keyword_match)
    examples = ExampleValueCache(connector, ttl_seconds=config.engine.example_cache_ttl_seconds)

    return QueryEngine(
        prompt_builder=PromptBuilder(
            schema or get_schema_context(),
            examples,
            history_turns=config.engine.history_turns,
        ),
        validator=validator,
        executor=QueryExecutor(
            connector,
            inline_row_limit=config.engine.inline_row_limit,
            statement_timeout=config.database.statement_timeout,
        ),
        analyzer=ResultAnalyzer(),
        backend=backend,
        fallback=PatternFallbackGenerator(validator)
        if config.engine.pattern_fallback_enabled
        else None,
        token_delay_ms=config.engine.token_fallback_delay_ms,
        request_timeout=config.engine.request_timeout_seconds,
        backend_error=backend_error,
    )
