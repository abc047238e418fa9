"""Prompt templates (Jinja2 with YAML front matter)."""

from schoolnlq.prompts.loader import PromptEntry, PromptLoader

__all__ = ["PromptEntry", "PromptLoader"]
