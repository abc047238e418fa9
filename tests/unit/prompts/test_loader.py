"""
Unit tests for PromptLoader.
"""

import pytest
from jinja2 import UndefinedError

from schoolnlq.prompts.loader import PromptLoader, split_front_matter


@pytest.fixture
def loader():
    """Create loader over the bundled templates."""
    return PromptLoader()


class TestFrontMatter:
    """Test YAML front matter handling."""

    def test_split(self):
        metadata, body = split_front_matter("---\nname: x\nversion: 1\n---\nHello {{ who }}")

        assert metadata == {"name": "x", "version": 1}
        assert body == "Hello {{ who }}"

    def test_no_front_matter(self):
        assert split_front_matter("plain") == ({}, "plain")


class TestBundledPrompts:
    """Test the engine's templates."""

    @pytest.mark.parametrize(
        "name", ["sql_generator.md", "conversational.md", "response_formatter.md", "help.md"]
    )
    def test_templates_have_metadata(self, loader, name):
        metadata = loader.get_metadata(name)

        assert metadata["name"] == name.removesuffix(".md")
        assert metadata["version"] == "1.0.0"

    def test_load_strips_front_matter(self, loader):
        body = loader.load("help.md")

        assert not body.startswith("---")
        assert "Show me students absent today" in body

    def test_render_formatter(self, loader):
        rendered = loader.render("response_formatter.md", summary="Found 3 results")

        assert "Found 3 results" in rendered
        assert "name:" not in rendered

    def test_render_requires_variables(self, loader):
        """Missing variables fail loudly."""
        with pytest.raises(UndefinedError):
            loader.render("response_formatter.md")

    def test_missing_prompt(self, loader):
        with pytest.raises(FileNotFoundError):
            loader.render("nope.md")
        with pytest.raises(FileNotFoundError):
            loader.load("nope.md")


class TestCustomDirectory:
    """Test loading from another directory."""

    def test_custom_dir(self, tmp_path):
        (tmp_path / "greet.md").write_text("---\nname: greet\n---\nHi {{ name }}!", encoding="utf-8")
        loader = PromptLoader(tmp_path)

        assert loader.render("greet.md", name="Asha") == "Hi Asha!"
