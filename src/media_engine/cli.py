"""Command-line interface using Typer."""

from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from media_engine import __version__
from media_engine.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="media-engine",
    help="Media Engine - brief-to-product-video CLI",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    "pending": "dim",
    "running": "blue",
    "completed": "green",
    "failed": "red",
    "cancelled": "yellow",
    "selected": "bold green",
    "rejected": "yellow",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Media Engine v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Media Engine - Generate, score and select product videos."""
    pass


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[bold red]Invalid {label}: {value}[/bold red]")
        raise typer.Exit(code=1)


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _show_job(job_id: UUID) -> None:
    """Print a job snapshot with its candidates."""
    from media_engine.errors import JobNotFoundError
    from media_engine.services.orchestrator import JobOrchestrator

    try:
        snapshot = JobOrchestrator().get_status(job_id)
    except JobNotFoundError:
        console.print(f"[bold red]Job not found: {job_id}[/bold red]")
        raise typer.Exit(code=1)

    summary = snapshot.qa_summary or {}
    console.print(Panel.fit(
        f"[cyan]Status:[/cyan] {_styled(snapshot.status.value)}\n"
        f"[cyan]Stage:[/cyan] {snapshot.stage.label} ({int(snapshot.stage)})\n"
        f"[cyan]Progress:[/cyan] {snapshot.progress_percent}% - {snapshot.current_step or '-'}\n"
        f"[cyan]Niche:[/cyan] {snapshot.niche}\n"
        f"[cyan]Retries:[/cyan] {snapshot.retry_count}\n"
        f"[cyan]Fallback used:[/cyan] {'Yes' if snapshot.fallback_used else 'No'}\n"
        f"[cyan]Best score:[/cyan] {summary.get('best_score', '-')}\n"
        f"[cyan]Output:[/cyan] {snapshot.output_url or '-'}"
        + (f"\n[red]Error:[/red] {snapshot.error_message}" if snapshot.error_message else ""),
        title=f"Video Job {snapshot.id}",
        border_style="blue",
    ))

    if not snapshot.candidates:
        return

    table = Table(title="Candidates")
    table.add_column("#", justify="right")
    table.add_column("Attempt", justify="right")
    table.add_column("Status")
    table.add_column("Similarity", justify="right")
    table.add_column("Label", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Final", justify="right")
    table.add_column("Reason", style="dim")

    def fmt(value: float | None) -> str:
        return f"{value:.2f}" if value is not None else "-"

    for candidate in snapshot.candidates:
        table.add_row(
            str(candidate.candidate_index),
            str(candidate.attempt),
            _styled(candidate.status.value),
            fmt(candidate.qa_scores.get("similarity")),
            fmt(candidate.qa_scores.get("label_ocr")),
            fmt(candidate.qa_scores.get("quality")),
            fmt(candidate.final_score),
            (candidate.rejection_reason or candidate.error_message or "")[:40],
        )

    console.print(table)


@app.command()
def submit(
    tenant: str = typer.Option(..., "--tenant", "-t", help="Tenant ID (UUID)"),
    brief: str = typer.Option(..., "--brief", "-b", help="Free-text video brief"),
    niche: Optional[str] = typer.Option(None, "--niche", "-n", help="Category niche"),
    product: Optional[str] = typer.Option(None, "--product", "-p", help="Catalog product ID"),
    image_url: Optional[str] = typer.Option(None, "--image-url", "-i", help="Product image URL"),
    variations: int = typer.Option(4, "--variations", help="Candidates per attempt"),
    duration: int = typer.Option(6, "--duration", "-d", help="Duration in seconds"),
    aspect_ratio: str = typer.Option("9:16", "--aspect-ratio", "-a", help="9:16, 1:1 or 16:9"),
    no_qa: bool = typer.Option(False, "--no-qa", help="Accept the first completed candidate"),
    no_fallback: bool = typer.Option(False, "--no-fallback", help="Disable fallback composition"),
    local: bool = typer.Option(False, "--local", help="Run in this process instead of Celery"),
) -> None:
    """Submit a video job."""
    from media_engine.domain.enums import AspectRatio
    from media_engine.domain.models import VideoJobInput
    from media_engine.errors import InvalidJobInputError
    from media_engine.services.orchestrator import JobOrchestrator
    from media_engine.utils import run_async

    try:
        ratio = AspectRatio(aspect_ratio)
    except ValueError:
        console.print(f"[bold red]Unsupported aspect ratio: {aspect_ratio}[/bold red]")
        raise typer.Exit(code=1)

    job_input = VideoJobInput(
        tenant_id=_parse_uuid(tenant, "tenant ID"),
        brief=brief,
        niche=niche or "",
        duration_seconds=duration,
        variation_count=variations,
        enable_qa=not no_qa,
        enable_fallback=not no_fallback,
        product_id=_parse_uuid(product, "product ID") if product else None,
        product_image_url=image_url,
        aspect_ratio=ratio,
    )

    orchestrator = JobOrchestrator(enqueue=(lambda job_id: None) if local else None)
    try:
        job_id = orchestrator.submit(job_input)
    except InvalidJobInputError as e:
        console.print(f"[bold red]Invalid job: {e}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Job submitted: {job_id}[/green]")

    if local:
        console.print("[dim]Running pipeline in-process...[/dim]")
        run_async(orchestrator.run(job_id))
        _show_job(job_id)


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Video job ID (UUID)"),
) -> None:
    """Show the status of a video job."""
    _show_job(_parse_uuid(job_id, "job ID"))


@app.command()
def cancel(
    job_id: str = typer.Argument(..., help="Video job ID (UUID)"),
) -> None:
    """Request cancellation of a video job."""
    from media_engine.errors import JobNotFoundError
    from media_engine.services.orchestrator import JobOrchestrator

    job_uuid = _parse_uuid(job_id, "job ID")
    try:
        snapshot = JobOrchestrator().request_cancel(job_uuid)
    except JobNotFoundError:
        console.print(f"[bold red]Job not found: {job_id}[/bold red]")
        raise typer.Exit(code=1)

    if snapshot.status.is_terminal:
        console.print(f"Job is {_styled(snapshot.status.value)}")
    else:
        console.print("[yellow]Cancellation requested; the job stops at its next stage[/yellow]")


@app.command()
def run(
    job_id: str = typer.Argument(..., help="Video job ID (UUID)"),
) -> None:
    """Run a submitted job synchronously in this process."""
    from media_engine.services.orchestrator import JobOrchestrator
    from media_engine.utils import run_async

    job_uuid = _parse_uuid(job_id, "job ID")
    console.print(f"[bold blue]Running job {job_uuid}...[/bold blue]")
    run_async(JobOrchestrator().run(job_uuid))
    _show_job(job_uuid)


@app.command()
def profiles() -> None:
    """List category profiles."""
    from media_engine.db.session import get_session_context
    from media_engine.services.category_profiles import CategoryProfileResolver

    with get_session_context() as session:
        items = CategoryProfileResolver(session).list_profiles()

    table = Table(title="Category Profiles")
    table.add_column("Niche", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Fidelity", justify="right")
    table.add_column("Label", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Temporal", justify="right")
    table.add_column("Threshold", justify="right", style="green")

    for profile in items:
        table.add_row(
            profile.niche,
            profile.source,
            f"{profile.product_fidelity_weight:.2f}",
            f"{profile.label_ocr_weight:.2f}",
            f"{profile.quality_weight:.2f}",
            f"{profile.temporal_stability_weight:.2f}",
            f"{profile.qa_pass_threshold:.2f}",
        )

    console.print(table)


@app.command("init-db")
def init_db_command(
    create_tables: bool = typer.Option(
        False, "--create-tables", help="Create tables directly (development only)"
    ),
) -> None:
    """Verify the database connection and optionally create tables."""
    from media_engine.db.session import init_db

    try:
        init_db(create_tables=create_tables)
    except Exception as e:
        console.print(f"[bold red]Database error: {e}[/bold red]")
        raise typer.Exit(code=1)

    console.print("[bold green]Database ready[/bold green]")
    if not create_tables:
        console.print("[dim]Run 'alembic upgrade head' to apply migrations[/dim]")


@app.command()
def health() -> None:
    """Check the health of all services."""
    import httpx

    from media_engine.config import settings

    url = f"http://{settings.api_host}:{settings.api_port}/health/ready"

    try:
        response = httpx.get(url, timeout=10)
        data = response.json()

        table = Table(title="Service Health")
        table.add_column("Component", style="cyan")
        table.add_column("Status")

        table.add_row("Database", "✓" if data.get("database") else "✗")
        table.add_row("Redis", "✓" if data.get("redis") else "✗")

        for component, healthy in data.get("components", {}).items():
            table.add_row(component, "✓" if healthy else "✗")

        console.print(table)

        if data.get("ready"):
            console.print("[bold green]All services healthy![/bold green]")
        else:
            console.print("[bold yellow]Some services unhealthy[/bold yellow]")
            raise typer.Exit(code=1)

    except httpx.RequestError as e:
        console.print(f"[bold red]Cannot connect to API: {e}[/bold red]")
        console.print("[dim]Is the API server running?[/dim]")
        raise typer.Exit(code=1)


@app.command()
def worker() -> None:
    """Start a Celery worker on the media queue (for development)."""
    console.print("[bold blue]Starting Celery worker...[/bold blue]")

    import subprocess
    import sys

    subprocess.run(
        [
            sys.executable,
            "-m",
            "celery",
            "-A",
            "media_engine.worker",
            "worker",
            "--queues=media",
            "--loglevel=info",
        ],
        check=True,
    )


if __name__ == "__main__":
    app()
