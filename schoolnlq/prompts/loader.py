"""Prompt template loading and rendering."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True)
class PromptEntry:
    """Loaded prompt body and its front matter."""

    content: str
    metadata: dict[str, Any]


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    """Separate YAML front matter from the template body."""
    if source.startswith("---"):
        parts = source.split("---", 2)
        if len(parts) == 3:
            return yaml.safe_load(parts[1]) or {}, parts[2].lstrip()
    return {}, source


class FrontMatterLoader(FileSystemLoader):
    """Jinja2 loader that strips YAML front matter."""

    def get_source(self, environment: Environment, template: str):  # type: ignore[override]
        source, filename, uptodate = super().get_source(environment, template)
        _, body = split_front_matter(source)
        return body, filename, uptodate


class PromptLoader:
    """Load and render the engine's prompt templates."""

    def __init__(self, prompts_dir: str | Path | None = None) -> None:
        self.prompts_dir = Path(prompts_dir) if prompts_dir else TEMPLATES_DIR
        self.cache: dict[str, PromptEntry] = {}
        self._env = Environment(
            loader=FrontMatterLoader(str(self.prompts_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def load(self, prompt_path: str) -> str:
        """
        Load a prompt body without rendering.

        Args:
            prompt_path: Path relative to the templates dir (e.g. "sql_generator.md")
        """
        if prompt_path in self.cache:
            return self.cache[prompt_path].content

        file_path = self.prompts_dir / prompt_path
        if not file_path.exists():
            raise FileNotFoundError(f"Prompt not found: {file_path}")

        metadata, content = split_front_matter(file_path.read_text(encoding="utf-8"))
        self.cache[prompt_path] = PromptEntry(content=content, metadata=metadata)
        return content

    def render(self, prompt_path: str, **variables: Any) -> str:
        """
        Render a template with Jinja2.

        Example:
            prompt = loader.render(
                "sql_generator.md",
                schema_context=schema_json,
                user_query="Which students are absent today?",
            )
        """
        try:
            template = self._env.get_template(prompt_path)
        except TemplateNotFound as exc:
            raise FileNotFoundError(f"Prompt not found: {prompt_path}") from exc
        return template.render(**variables)

    def get_metadata(self, prompt_path: str) -> dict[str, Any]:
        """Return front matter for a prompt (loads if needed)."""
        if prompt_path not in self.cache:
            self.load(prompt_path)
        return self.cache[prompt_path].metadata
