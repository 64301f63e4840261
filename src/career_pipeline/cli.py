"""Command-line interface for the career pipeline."""

import asyncio
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from career_pipeline.config import settings
from career_pipeline.core.errors import PipelineError
from career_pipeline.core.models import PostingStatus
from career_pipeline.core.pipeline import Pipeline, create_pipeline
from career_pipeline.core.transitions import to_mermaid
from career_pipeline.utils.logging import configure_logging

app = typer.Typer(
    name="cpl",
    help="Career Pipeline - discovers, scores and drafts applications for early-career job postings",
    add_completion=False,
)
console = Console()


async def _with_pipeline(action, init: bool = True):
    pipeline = create_pipeline()
    try:
        if init:
            await pipeline.init_db()
        return await action(pipeline)
    finally:
        await pipeline.close()


@app.callback()
def _setup() -> None:
    configure_logging()


@app.command("init-db")
def init_db() -> None:
    """Create the pipeline tables."""
    async def action(pipeline: Pipeline) -> None:
        await pipeline.init_db()

    asyncio.run(_with_pipeline(action, init=False))
    console.print(f"✅ Database ready at {settings.database_url}")


@app.command()
def worker(
    fire_immediately: bool = typer.Option(False, "--now", help="Trigger a scout run on startup"),
) -> None:
    """Run every queue worker and the scout scheduler until interrupted."""
    async def action(pipeline: Pipeline) -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows event loops have no signal handlers
                pass
        await pipeline.run_forever(stop, fire_immediately=fire_immediately)

    console.print(
        f"🚀 Starting workers (scout every {settings.scout_interval_hours:g}h, "
        f"redrive policy: {settings.drafting_redrive})"
    )
    asyncio.run(_with_pipeline(action))
    console.print("👋 Workers stopped")


@app.command("run-once")
def run_once() -> None:
    """Trigger one scout run and process every queue until idle."""
    async def action(pipeline: Pipeline) -> int:
        return await pipeline.run_once()

    processed = asyncio.run(_with_pipeline(action))
    console.print(f"✅ Processed {processed} task(s)")


@app.command()
def scout() -> None:
    """Enqueue a scout run for a running worker to pick up."""
    async def action(pipeline: Pipeline) -> str:
        return await pipeline.scheduler.trigger()

    task_id = asyncio.run(_with_pipeline(action))
    console.print(f"📬 Scout task enqueued: {task_id}")


@app.command()
def redrive(posting_id: str = typer.Argument(..., help="Posting left in Drafting")) -> None:
    """Re-enter materials drafting for a posting that failed compliance."""
    async def action(pipeline: Pipeline) -> str:
        return await pipeline.runner.redrive(posting_id)

    try:
        task_id = asyncio.run(_with_pipeline(action))
    except PipelineError as e:
        console.print(f"❌ {e}")
        raise typer.Exit(code=1)
    console.print(f"🔁 Materials task enqueued: {task_id}")


@app.command()
def status(
    state: Optional[PostingStatus] = typer.Option(None, "--status", help="List postings in this status"),
    limit: int = typer.Option(20, help="Maximum postings to list"),
) -> None:
    """Show postings per status and queue backlog."""
    async def action(pipeline: Pipeline):
        counts = await pipeline.store.count_by_status()
        pending = await pipeline.broker.pending_count()
        postings = await pipeline.store.list_postings(state, limit=limit) if state else []
        return counts, pending, postings

    counts, pending, postings = asyncio.run(_with_pipeline(action))

    table = Table(title="Postings by Status")
    table.add_column("Status", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for member in PostingStatus:
        table.add_row(member.value, str(counts.get(member.value, 0)))
    console.print(table)
    console.print(f"Pending tasks: {pending}")

    if postings:
        listing = Table(title=f"{state.value} Postings")
        listing.add_column("Id", style="dim")
        listing.add_column("Company", style="cyan")
        listing.add_column("Title")
        listing.add_column("Fit", justify="right")
        for posting in postings:
            listing.add_row(
                posting.id,
                posting.company,
                posting.title,
                "" if posting.fit_score is None else str(posting.fit_score),
            )
        console.print(listing)


@app.command()
def graph() -> None:
    """Print the stage transition graph as Mermaid."""
    console.print(to_mermaid(), markup=False, highlight=False)


@app.command()
def config() -> None:
    """Show current configuration."""
    table = Table(title="Career Pipeline Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    # Show non-sensitive settings
    table.add_row("Database", settings.database_url)
    table.add_row("Knowledge Base", settings.knowledge_base_dir)
    table.add_row("Reasoning Endpoint", settings.asi_base_url)
    table.add_row("Fast Model", settings.fast_model)
    table.add_row("Extended Model", settings.extended_model)
    table.add_row("ASI Key", "configured" if settings.asi_api_key else "missing")
    table.add_row("Groq Key", "configured" if settings.groq_api_key else "missing")
    table.add_row("Greenhouse Boards", ", ".join(t.slug for t in settings.greenhouse_targets))
    table.add_row("Scout Interval (h)", f"{settings.scout_interval_hours:g}")
    table.add_row("Fit Threshold", str(settings.fit_threshold))
    table.add_row("Follow-up Offsets (days)", ", ".join(str(d) for d in settings.followup_offsets_days))
    table.add_row(
        "Concurrency",
        f"scout={settings.scout_concurrency} normalize={settings.normalize_concurrency} "
        f"fit-score={settings.fit_score_concurrency} materials={settings.materials_concurrency} "
        f"compliance={settings.compliance_concurrency}"
    )
    table.add_row("Max Attempts", str(settings.task_max_attempts))
    table.add_row("Drafting Redrive", settings.drafting_redrive)
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from career_pipeline import __version__
    console.print(f"Career Pipeline v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
