"""CLI interface for the CV assistant using Typer."""

import asyncio
import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from ..core.config.loader import load_config
from ..core.config.settings import get_settings
from ..core.errors import IndexingConflict
from ..core.orchestrator.container import ServiceContainer, build_container
from ..observability.logger import get_logger, setup_logging

logger = get_logger(__name__)
console = Console()

app = typer.Typer(
    name="cvassist",
    help="CV Assistant - semantic answers about a curated skills profile",
    add_completion=False,
)
quota_app = typer.Typer(help="Inspect and administer the daily AI budget")
app.add_typer(quota_app, name="quota")


def _get_container() -> ServiceContainer:
    """Configure logging and build services from the config hierarchy."""
    config = load_config()
    log = get_settings(config).logging
    setup_logging(log.level, log.format, log.file)
    return build_container(config)


def _print_quota(container: ServiceContainer) -> None:
    status = container.quota.status()
    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    colour = "red" if status.is_exceeded else "green"
    table.add_row("Date (UTC)", status.date)
    table.add_row("Used", f"[{colour}]{status.used:.1f}[/] / {status.limit:.0f}")
    table.add_row("Remaining", f"{status.remaining:.1f}")
    table.add_row("Inferences", str(status.inference_count))
    table.add_row("Resets at", status.reset_at.isoformat())
    console.print(table)


@app.command()
def ask(
    question: Annotated[str, typer.Argument(help="Question about the profile")],
    bypass: Annotated[str | None, typer.Option("--bypass", "-b", help="Availability bypass token")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw structured response")] = False,
):
    """Answer a question against the skills index."""
    container = _get_container()
    response = asyncio.run(container.orchestrator.answer_query(question, bypass_token=bypass))

    if as_json:
        console.print_json(json.dumps(response.model_dump(mode="json")))
        return

    if response.error and not response.matches:
        console.print(f"[yellow]{response.error.category}:[/yellow] {response.error.message}")
        if response.error.suggestion:
            console.print(f"[dim]{response.error.suggestion}[/dim]")
        raise typer.Exit(code=1 if response.error.category == "search_unavailable" else 0)

    if response.reply:
        console.print(f"\n[bold]{response.reply}[/bold]")
    if response.cached:
        console.print("[dim](cached)[/dim]")

    if response.matches:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Rank", style="dim", width=6)
        table.add_column("Skill")
        table.add_column("Years", justify="right")
        table.add_column("Level")
        table.add_column("Employer")
        table.add_column("Score", justify="right")
        for idx, match in enumerate(response.matches, start=1):
            table.add_row(
                str(idx),
                match.skill.name,
                f"{match.skill.years_of_experience:g}",
                match.skill.proficiency_level,
                match.skill.employer or "",
                f"{match.score:.3f}",
            )
        console.print(table)
        console.print(f"[dim]source: {response.source} | confidence: {response.confidence}[/dim]")


@app.command()
def index(
    item_type: Annotated[str, typer.Option("--type", "-t", help="Item type to index")] = "skills",
    batch_size: Annotated[int | None, typer.Option("--batch-size", help="Records per batch")] = None,
    max_batches: Annotated[int | None, typer.Option("--max-batches", help="Stop after N batches")] = None,
    restart: Annotated[bool, typer.Option("--restart", help="Start a new version instead of resuming")] = False,
):
    """Re-embed records into the vector index (resumes unfinished runs)."""
    if batch_size is not None and batch_size <= 0:
        console.print("[red]! Error:[/red] --batch-size must be greater than 0")
        raise typer.Exit(code=1)

    container = _get_container()
    try:
        result = asyncio.run(
            container.reindex.run(item_type, batch_size=batch_size, max_batches=max_batches, restart=restart)
        )
    except IndexingConflict as exc:
        console.print(f"[red]! {exc}[/red]")
        raise typer.Exit(code=1)

    colour = {"completed": "green", "aborted": "red"}.get(result.status, "yellow")
    console.print(
        f"[{colour}]{result.status}[/] version={result.version} processed={result.processed} "
        f"batches={result.batches_run} failed={result.batches_failed} next_offset={result.next_offset}"
        + (" (resumed)" if result.resumed else "")
    )
    for error in result.errors:
        console.print(f"[dim]- {error}[/dim]")


@quota_app.command("status")
def quota_status():
    """Show today's AI budget usage."""
    _print_quota(_get_container())


@quota_app.command("reset")
def quota_reset():
    """Clear today's spend counter."""
    container = _get_container()
    container.quota.reset()
    console.print("[green]Quota reset[/green]")
    _print_quota(container)


@quota_app.command("sync")
def quota_sync(
    actual: Annotated[float, typer.Argument(help="Measured spend for today")],
):
    """Overwrite today's spend with a measured figure."""
    if actual < 0:
        console.print("[red]! Error:[/red] actual must be non-negative")
        raise typer.Exit(code=1)
    container = _get_container()
    container.quota.sync(actual)
    _print_quota(container)


@app.command()
def health():
    """Check vector backends and storage."""
    container = _get_container()
    healthy = asyncio.run(container.vector_store.health())

    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Vector store", container.vector_store.name)
    table.add_row("Search", "[green]ok[/green]" if healthy else "[red]unavailable[/red]")
    table.add_row("Skills", str(container.repository.count_skills()))
    table.add_row("Vectors", str(container.repository.count_vectors()))
    console.print(table)

    if not healthy:
        logger.warning("health_check_failed", vector_store=container.vector_store.name)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
