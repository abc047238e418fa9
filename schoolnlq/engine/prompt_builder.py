"""
Prompt Builder

Composes the instruction documents sent to the generation backend:

- SQL prompt: task framing, schema, example values, recent history and the
  synthesis rules
- Conversational prompt: schema, example values and history, no SQL rules
- Formatting prompt: asks for a friendly rephrasing of the result summary

The tenant id is never written into a prompt; only the placeholder is.
"""

import json
import logging
from collections.abc import Sequence

from schoolnlq.engine.validator import TENANT_PLACEHOLDER
from schoolnlq.models.query import ConversationTurn
from schoolnlq.prompts.loader import PromptLoader
from schoolnlq.schema.context import SchemaContext
from schoolnlq.schema.examples import ExampleValueCache

logger = logging.getLogger(__name__)


class PromptBuilder:
    """
    Builds prompts from the schema context and the example-value cache.

    Args:
        schema: Static schema description
        examples: Shared example-value cache (refreshed here when stale)
        loader: Prompt template loader
        history_turns: Most recent turns to include
    """

    def __init__(
        self,
        schema: SchemaContext,
        examples: ExampleValueCache,
        loader: PromptLoader | None = None,
        history_turns: int = 10,
    ):
        self.schema = schema
        self.examples = examples
        self.loader = loader or PromptLoader()
        self.history_turns = history_turns
        self._schema_text = schema.to_prompt_text()

    async def build_sql_prompt(
        self, question: str, history: Sequence[ConversationTurn] | None = None
    ) -> str:
        """Prompt asking for one tenant-scoped SELECT statement."""
        example_values = await self._example_values()
        prompt = self.loader.render(
            "sql_generator.md",
            schema_context=self._schema_text,
            example_values=example_values,
            history=self.recent_history(history),
            user_query=question,
            tenant_placeholder=TENANT_PLACEHOLDER,
        )
        logger.debug(f"Built SQL prompt ({len(prompt)} chars)")
        return prompt

    async def build_conversational_prompt(
        self, question: str, history: Sequence[ConversationTurn] | None = None
    ) -> str:
        """Context-only prompt for messages that need no data."""
        example_values = await self._example_values()
        return self.loader.render(
            "conversational.md",
            schema_context=self._schema_text,
            example_values=example_values,
            history=self.recent_history(history),
            user_query=question,
        )

    def build_formatting_prompt(self, summary: str) -> str:
        return self.loader.render("response_formatter.md", summary=summary).strip()

    def help_text(self) -> str:
        return self.loader.load("help.md").strip()

    def recent_history(
        self, history: Sequence[ConversationTurn] | None
    ) -> list[ConversationTurn]:
        if not history or self.history_turns <= 0:
            return []
        return list(history)[-self.history_turns :]

    async def _example_values(self) -> str:
        values = await self.examples.get()
        return json.dumps(values, indent=2, default=str, ensure_ascii=False)
