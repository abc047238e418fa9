"""
Engine Module

Per-request building blocks of the query engine: lexical routing, prompt
assembly, SQL validation, execution, result analysis and the pattern fallback.
"""

from schoolnlq.engine.analyzer import ResultAnalyzer, format_inr
from schoolnlq.engine.classifier import Route, classify, needs_data
from schoolnlq.engine.executor import DEFAULT_INLINE_ROW_LIMIT, QueryExecutor
from schoolnlq.engine.pattern_fallback import (
    PatternFallbackGenerator,
    PatternRule,
    normalize_class_name,
)
from schoolnlq.engine.prompt_builder import PromptBuilder
from schoolnlq.engine.validator import DENYLIST, TENANT_PLACEHOLDER, SQLValidator

__all__ = [
    "DEFAULT_INLINE_ROW_LIMIT",
    "DENYLIST",
    "TENANT_PLACEHOLDER",
    "PatternFallbackGenerator",
    "PatternRule",
    "PromptBuilder",
    "QueryExecutor",
    "ResultAnalyzer",
    "Route",
    "SQLValidator",
    "classify",
    "format_inr",
    "needs_data",
    "normalize_class_name",
]
