"""
Unit Tests for CLI

Tests the schoolnlq CLI commands.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from schoolnlq import __version__
from schoolnlq.cli import MAX_TABLE_ROWS, cli, format_rows
from schoolnlq.errors import ConfigurationError
from schoolnlq.models.query import (
    DoneType,
    EventKind,
    GeneratedQuery,
    SanitizedSQL,
    StreamEvent,
)

TENANT_ID = "3a1f2d3e-4b5c-6d7e-8f90-1234567890ab"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def engine():
    """Mock query engine returned by create_engine."""
    engine = MagicMock()
    engine.close = AsyncMock()
    return engine


@pytest.fixture
def patched_engine(engine):
    with patch("schoolnlq.cli.create_engine", new=AsyncMock(return_value=engine)):
        yield engine


def _stream(*events):
    async def stream(message, tenant):
        for event in events:
            yield event

    return stream


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "ask", "generate-sql", "schema"):
            assert command in result.output


class TestAsk:
    """Test the ask command."""

    def test_streams_answer(self, runner, patched_engine):
        patched_engine.stream = _stream(
            StreamEvent.thinking("Generating SQL query based on your question..."),
            StreamEvent.sql("SELECT first_name FROM students"),
            StreamEvent(event=EventKind.DATA, data={"data": [{"first_name": "Asha"}], "count": 1}),
            StreamEvent.token("One "),
            StreamEvent.token("student."),
            StreamEvent.done(DoneType.DATA_QUERY),
        )

        result = runner.invoke(cli, ["ask", "Show all students", "-t", TENANT_ID])

        assert result.exit_code == 0
        assert "SELECT first_name FROM students" in result.output
        assert "Asha" in result.output
        assert "One student." in result.output
        patched_engine.close.assert_awaited_once()

    def test_no_sql_flag(self, runner, patched_engine):
        patched_engine.stream = _stream(
            StreamEvent.sql("SELECT first_name FROM students"),
            StreamEvent.done(DoneType.DATA_QUERY),
        )

        result = runner.invoke(cli, ["ask", "Show all students", "-t", TENANT_ID, "--no-sql"])

        assert result.exit_code == 0
        assert "SELECT first_name" not in result.output

    def test_large_result_not_rendered(self, runner, patched_engine):
        patched_engine.stream = _stream(
            StreamEvent(
                event=EventKind.DATA,
                data={"sql": "SELECT 1", "count": 500, "fetchViaApi": True},
            ),
            StreamEvent.done(DoneType.DATA_QUERY),
        )

        result = runner.invoke(cli, ["ask", "List all students", "-t", TENANT_ID])

        assert result.exit_code == 0
        assert "500 rows" in result.output

    def test_error_event_exits_nonzero(self, runner, patched_engine):
        patched_engine.stream = _stream(
            StreamEvent.error("Error executing query: timeout", code="sql_execution_error"),
            StreamEvent.done(DoneType.ERROR),
        )

        result = runner.invoke(cli, ["ask", "Show all students", "-t", TENANT_ID])

        assert result.exit_code == 1
        assert "Error executing query: timeout" in result.output

    def test_engine_startup_failure(self, runner):
        failing = AsyncMock(side_effect=ConfigurationError("OpenAI API key is required"))
        with patch("schoolnlq.cli.create_engine", new=failing):
            result = runner.invoke(cli, ["ask", "Show all students", "-t", TENANT_ID])

        assert result.exit_code == 1
        assert "OpenAI API key is required" in result.output

    def test_invalid_tenant(self, runner, patched_engine):
        result = runner.invoke(cli, ["ask", "Show all students", "-t", "bad tenant;"])

        assert result.exit_code == 2
        assert "--tenant" in result.output

    def test_tenant_required(self, runner):
        result = runner.invoke(cli, ["ask", "Show all students"])

        assert result.exit_code == 2


class TestGenerateSQL:
    """Test the generate-sql command."""

    def test_prints_sql(self, runner, patched_engine):
        sql = f"SELECT * FROM fees WHERE school_id = '{TENANT_ID}'"
        patched_engine.generate_sql = AsyncMock(
            return_value=GeneratedQuery(
                raw_text=sql,
                sanitized_sql=SanitizedSQL(sql=sql),
                description="Find students with pending fees",
                source="pattern",
            )
        )

        result = runner.invoke(cli, ["generate-sql", "List pending fees", "-t", TENANT_ID])

        assert result.exit_code == 0
        assert "SELECT * FROM fees" in result.output
        assert "Find students with pending fees" in result.output
        tenant = patched_engine.generate_sql.await_args.args[1]
        assert tenant.tenant_id == TENANT_ID


class TestSchema:
    """Test the schema command."""

    def test_table_listing(self, runner):
        result = runner.invoke(cli, ["schema"])

        assert result.exit_code == 0
        assert "students" in result.output
        assert "attendances" in result.output

    def test_json_output(self, runner):
        result = runner.invoke(cli, ["schema", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert "students" in payload["tables"]


class TestServe:
    """Test the serve command."""

    def test_runs_uvicorn(self, runner):
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        run.assert_called_once_with(
            "schoolnlq.api.main:app", host="0.0.0.0", port=9000, reload=False
        )


class TestFormatRows:
    """Test terminal table rendering."""

    def test_truncates_long_results(self):
        rows = [{"id": i, "name": None} for i in range(MAX_TABLE_ROWS + 5)]

        table = format_rows(rows, len(rows))

        assert table.row_count == MAX_TABLE_ROWS
        assert table.caption == f"Showing {MAX_TABLE_ROWS} of {MAX_TABLE_ROWS + 5} rows"

    def test_empty_rows(self):
        table = format_rows([], 0)

        assert table.row_count == 0
