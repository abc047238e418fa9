"""
School NLQ CLI

Command-line interface for running and exercising the query engine.

Usage:
    schoolnlq serve                                         # Run the API server
    schoolnlq ask "Which students are absent today?" -t ID  # Stream one answer
    schoolnlq generate-sql "List pending fees" -t ID        # Show SQL only
    schoolnlq schema                                        # Print the schema context
"""

import asyncio
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from schoolnlq import __version__
from schoolnlq.config import get_settings
from schoolnlq.errors import NLQError
from schoolnlq.models.query import EventKind, TenantContext
from schoolnlq.pipeline.orchestrator import create_engine
from schoolnlq.schema.context import get_schema_context

console = Console()

MAX_TABLE_ROWS = 20


def configure_cli_logging(verbose: bool) -> None:
    if verbose:
        get_settings().logging.configure()
        return
    logging.basicConfig(level=logging.CRITICAL)
    for logger_name in ("schoolnlq", "httpx", "openai", "anthropic", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


def _tenant(tenant_id: str) -> TenantContext:
    try:
        return TenantContext(tenant_id=tenant_id)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--tenant") from e


def format_rows(rows: list[dict[str, Any]], total: int) -> Table:
    """Render result rows as a rich table, truncated for the terminal."""
    table = Table(show_header=True, header_style="bold cyan")
    if not rows:
        return table

    for column in rows[0].keys():
        table.add_column(str(column))
    for row in rows[:MAX_TABLE_ROWS]:
        table.add_row(*["" if value is None else str(value) for value in row.values()])

    if total > MAX_TABLE_ROWS:
        table.caption = f"Showing {MAX_TABLE_ROWS} of {total} rows"
    return table


@click.group()
@click.version_option(version=__version__, prog_name="schoolnlq")
@click.option("--verbose", "-v", is_flag=True, help="Show engine logs.")
def cli(verbose: bool):
    """Natural language questions over the school ERP database."""
    configure_cli_logging(verbose)


@cli.command()
@click.option("--host", default=None, help="Bind host (defaults to API_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "schoolnlq.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


@cli.command()
@click.argument("question")
@click.option("--tenant", "-t", "tenant_id", required=True, help="Tenant (school) id.")
@click.option("--show-sql/--no-sql", default=True, show_default=True, help="Show generated SQL.")
def ask(question: str, tenant_id: str, show_sql: bool):
    """Ask a single question and stream the answer."""
    tenant = _tenant(tenant_id)

    async def run_query() -> bool:
        engine = await create_engine()
        answer: list[str] = []
        succeeded = True
        try:
            async for event in engine.stream(question, tenant):
                if event.event is EventKind.THINKING:
                    console.print(f"[dim]{event.data['message']}[/dim]")
                elif event.event is EventKind.SQL and show_sql:
                    console.print(Panel(event.data["sql"], title="SQL", border_style="cyan"))
                elif event.event is EventKind.DATA:
                    if event.data.get("fetchViaApi"):
                        console.print(
                            f"[yellow]{event.data['count']} rows; too many to show inline.[/yellow]"
                        )
                    else:
                        console.print(format_rows(event.data["data"], event.data["count"]))
                elif event.event is EventKind.TOKEN:
                    answer.append(event.data["token"])
                elif event.event is EventKind.ERROR:
                    succeeded = False
                    console.print(f"[red]Error: {event.data['message']}[/red]")
        finally:
            await engine.close()

        if answer:
            console.print(Panel(Markdown("".join(answer)), title="[bold green]Answer[/bold green]"))
        return succeeded

    try:
        succeeded = asyncio.run(run_query())
    except NLQError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)
    if not succeeded:
        sys.exit(1)


@cli.command("generate-sql")
@click.argument("question")
@click.option("--tenant", "-t", "tenant_id", required=True, help="Tenant (school) id.")
def generate_sql(question: str, tenant_id: str):
    """Generate validated SQL for a question without running it."""
    tenant = _tenant(tenant_id)

    async def run_generation():
        engine = await create_engine()
        try:
            return await engine.generate_sql(question, tenant)
        finally:
            await engine.close()

    try:
        query = asyncio.run(run_generation())
    except NLQError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)

    console.print(Panel(query.sql, title=f"SQL ({query.source})", border_style="cyan"))
    console.print(f"[dim]{query.description}[/dim]")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the raw prompt JSON.")
def schema(as_json: bool):
    """Print the schema context given to the generator."""
    context = get_schema_context()
    if as_json:
        click.echo(context.to_prompt_text())
        return

    table = Table(title=f"Schema {context.version}", show_header=True, header_style="bold cyan")
    table.add_column("Table")
    table.add_column("Columns", justify="right")
    table.add_column("Description")
    for name in context.table_names:
        table_schema = context.tables[name]
        table.add_row(name, str(len(table_schema.columns)), table_schema.description)
    console.print(table)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
