"""Typer CLI entrypoint for reqflow."""
import asyncio

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from reqflow.core.errors import AppError
from reqflow.core.logging import setup_logging
from reqflow.core.settings import get_settings
from reqflow.db.base import dispose_engine, get_session_factory, init_models
from reqflow.db.repositories import DocumentRepository, NotificationRepository, ProjectRepository
from reqflow.services.dispatcher import StageDispatcher
from reqflow.services.lease import RedisDispatchLease
from reqflow.services.notifications import NotificationService
from reqflow.services.processing_client import get_processing_client

app_cli = typer.Typer(help="reqflow command line interface")
console = Console()


@app_cli.command("health")
def health() -> None:
    """Show basic health / config info."""
    settings = get_settings()
    table = Table(title="reqflow Health")
    table.add_column("Key")
    table.add_column("Value")
    table.add_row("environment", settings.environment)
    table.add_row("debug", str(settings.debug))
    table.add_row("api_prefix", settings.api_prefix)
    for stage in ("REQUIREMENTS", "BRD", "BLUEPRINT"):
        table.add_row(f"{stage.lower()}_url", settings.stage_url(stage) or "(not configured)")
    table.add_row("dispatch_timeout", f"{settings.dispatch_timeout}s")
    table.add_row("dispatch_lease", "enabled" if settings.dispatch_lease_enabled else "disabled")
    console.print(table)


@app_cli.command("run-server")
def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = True) -> None:  # pragma: no cover
    """Run the FastAPI development server."""
    uvicorn.run("reqflow.main:app", host=host, port=port, reload=reload)


@app_cli.command("db-init")
def db_init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables before initializing"),
) -> None:
    """Create database tables."""

    async def _run():
        await init_models(drop=drop)
        await dispose_engine()

    asyncio.run(_run())
    console.print("[green]Database initialized[/green]")


@app_cli.command("projects")
def list_projects(
    status: str | None = typer.Option(None, help="Only show projects in this status"),
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(20, min=1, max=100),
) -> None:
    """List projects, newest first."""

    async def _run():
        try:
            async with get_session_factory()() as session:
                return await ProjectRepository(session).list(page=page, limit=limit, status=status)
        finally:
            await dispose_engine()

    projects, total = asyncio.run(_run())
    table = Table(title=f"Projects ({total} total)")
    for column in ("project_id", "name", "status", "documents", "updated"):
        table.add_column(column)
    for project in projects:
        table.add_row(
            project.project_id,
            project.name,
            project.status,
            str(project.total_documents),
            project.updated_at.isoformat() if project.updated_at else "",
        )
    console.print(table)


@app_cli.command("dispatch")
def dispatch(project_id: str, stage: str) -> None:
    """Ask the processing service to run a stage for a project."""
    settings = get_settings()
    setup_logging(settings.log_level)

    async def _run():
        lease = (
            RedisDispatchLease(ttl=settings.dispatch_lease_ttl)
            if settings.dispatch_lease_enabled
            else None
        )
        client = get_processing_client()
        try:
            async with get_session_factory()() as session:
                dispatcher = StageDispatcher(
                    ProjectRepository(session),
                    DocumentRepository(session),
                    client,
                    settings,
                    lease=lease,
                )
                return await dispatcher.dispatch(project_id, stage)
        finally:
            await client.aclose()
            await dispose_engine()

    try:
        result = asyncio.run(_run())
    except AppError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        raise typer.Exit(1) from e
    console.print(
        f"[bold green]{result.stage} dispatched[/bold green] for {result.project_id} "
        f"({result.previous_status} -> {result.status})"
    )


@app_cli.command("cleanup-notifications")
def cleanup_notifications(
    days_old: int = typer.Option(30, "--days-old", min=0, help="Age in days of archived notifications to delete"),
) -> None:
    """Delete archived notifications older than ``--days-old`` days."""

    async def _run():
        try:
            async with get_session_factory()() as session:
                return await NotificationService(NotificationRepository(session)).cleanup(days_old)
        finally:
            await dispose_engine()

    deleted = asyncio.run(_run())
    console.print(f"[green]Deleted {deleted} archived notifications[/green]")


if __name__ == "__main__":  # pragma: no cover
    app_cli()
