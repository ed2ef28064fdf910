"""
Discubot CLI - command-line interface for Discubot.

Processes stored webhook payloads, retries failed discussions, checks
platform credentials and runs the API server.
"""

import json
import logging
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from discubot.logging_config import setup_logging

app = typer.Typer(
    name="discubot",
    help="Discubot - turn discussion threads into Notion tasks",
    no_args_is_help=True,
)

console = Console()


def _init_logging() -> None:
    # Fall back to console logging if the log directory is not writable
    try:
        setup_logging(context="cli")
    except PermissionError:
        logging.basicConfig(level=logging.INFO)


def _print_result(result) -> None:
    if result.cached:
        console.print(
            f"[yellow]Already processed:[/yellow] discussion {result.discussion_id}"
        )
        return

    console.print(f"[green]✓ Discussion {result.discussion_id} processed[/green]")
    console.print(f"  Job: {result.job_id or 'N/A'}")
    console.print(f"  Time: {result.processing_time_ms}ms")
    if result.is_bootstrap:
        console.print("  Bootstrap comment: users discovered, no tasks created")
        return
    if result.ai_analysis:
        console.print(f"  Summary: {result.ai_analysis.summary.summary}")

    if result.notion_tasks:
        table = Table(title="Notion tasks")
        table.add_column("#", justify="right")
        table.add_column("Page ID")
        table.add_column("URL")
        for index, task in enumerate(result.notion_tasks, start=1):
            table.add_row(str(index), task.id, task.url)
        console.print(table)
    else:
        console.print("  No Notion tasks created")


@app.command()
def process(
    payload: Path = typer.Argument(..., help="JSON file with a parsed discussion"),
    skip_ai: bool = typer.Option(False, "--skip-ai", help="Use the discussion as a single task"),
    skip_notion: bool = typer.Option(False, "--skip-notion", help="Do not create Notion tasks"),
) -> None:
    """
    Process a parsed discussion payload.

    The payload uses the same fields as POST /api/discussions/process.
    """
    from discubot.db.connection import db_session
    from discubot.exceptions import ProcessingError
    from discubot.models.parsed import ParsedDiscussion, ProcessingOptions
    from discubot.pipeline import DiscussionProcessor, ProcessorRepositories
    from discubot.services.notion import NotionTaskCreator

    _init_logging()

    if not payload.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {payload}")
        raise typer.Exit(1)

    try:
        parsed = ParsedDiscussion.from_dict(json.loads(payload.read_text()))
    except (json.JSONDecodeError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] Invalid payload: {e}")
        raise typer.Exit(1)

    console.print(
        f"[bold blue]Processing {parsed.source_type} discussion:[/bold blue] "
        f"{parsed.source_thread_id}"
    )

    task_creator = NotionTaskCreator()
    # db_session commits on success; failures are committed explicitly below
    with db_session() as session:
        processor = DiscussionProcessor(
            ProcessorRepositories.from_session(session), task_creator=task_creator
        )
        try:
            result = processor.process(
                parsed, ProcessingOptions(skip_ai=skip_ai, skip_notion=skip_notion)
            )
        except ProcessingError as e:
            session.commit()
            console.print(f"[red]✗ Failed at {e.stage}:[/red] {e.message}")
            if e.retryable:
                console.print("  This error is retryable")
            raise typer.Exit(1)
        finally:
            task_creator.close()
        _print_result(result)


@app.command()
def retry(
    discussion_id: UUID = typer.Argument(..., help="ID of a failed discussion"),
) -> None:
    """Retry a failed discussion with exponential backoff."""
    from discubot.db.connection import db_session
    from discubot.exceptions import ProcessingError
    from discubot.pipeline import DiscussionProcessor, ProcessorRepositories
    from discubot.services.notion import NotionTaskCreator

    _init_logging()
    console.print(f"[bold blue]Retrying discussion:[/bold blue] {discussion_id}")

    task_creator = NotionTaskCreator()
    with db_session() as session:
        processor = DiscussionProcessor(
            ProcessorRepositories.from_session(session), task_creator=task_creator
        )
        try:
            result = processor.retry_failed_discussion(discussion_id)
        except ProcessingError as e:
            session.commit()
            console.print(f"[red]✗ Retry failed at {e.stage}:[/red] {e.message}")
            raise typer.Exit(1)
        finally:
            task_creator.close()
        _print_result(result)


@app.command("test-connection")
def test_connection(
    source_type: str = typer.Argument(..., help="slack, figma, notion or notion-db"),
    token: str = typer.Option(..., "--token", help="API token to test"),
    database_id: str = typer.Option(
        None, "--database-id", help="Notion database ID (notion-db only)"
    ),
) -> None:
    """Check credentials for a source platform or a Notion task database."""
    from discubot.adapters import AdapterConfig, get_adapter

    _init_logging()

    if source_type == "notion-db":
        from discubot.services.notion import NotionTaskCreator

        if not database_id:
            console.print("[bold red]Error:[/bold red] --database-id is required")
            raise typer.Exit(1)
        creator = NotionTaskCreator()
        try:
            outcome = creator.test_connection(token, database_id)
        finally:
            creator.close()
        if not outcome["connected"]:
            console.print(f"[red]✗ Connection failed:[/red] {outcome['error']}")
            raise typer.Exit(1)
        details = outcome["details"]
        console.print(f"[green]✓ Connected to '{details['title']}'[/green]")
        console.print(f"  {details['url']}")
        return

    try:
        adapter = get_adapter(source_type)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    config = AdapterConfig(source_type=source_type, api_token=token)
    try:
        validation = adapter.validate_config(config)
        connected = validation.valid and adapter.test_connection(config)
    finally:
        adapter.close()

    for warning in validation.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    if not validation.valid:
        for error in validation.errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    if connected:
        console.print(f"[green]✓ {source_type} connection OK[/green]")
    else:
        console.print(f"[red]✗ {source_type} connection failed[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to"),
    port: int = typer.Option(None, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.
    """
    import uvicorn

    from discubot.config import settings

    host = host or settings.api_host
    port = port or settings.api_port

    console.print("[bold green]Starting Discubot API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "discubot.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
