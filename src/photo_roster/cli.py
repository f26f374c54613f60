"""CLI for photo-roster.

Commands:
    init-db                  - Create the roster tables
    resolve <path>           - Run the photo fallback chain for one storage path
    browse                   - Page through the roster like the list view does
    stats                    - Show row counts
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import func, select

from photo_roster.clients.storage import StorageClient
from photo_roster.config import settings
from photo_roster.listing.fetcher import PageFetcher
from photo_roster.listing.session import ListSession
from photo_roster.listing.sources import DataSource, build_data_source
from photo_roster.models import Person, ResolutionMethod
from photo_roster.photos.resolver import PhotoResolver

app = typer.Typer(
    name="photo-roster",
    help="photo-roster: photo resolution and incremental list loading for roster views",
    no_args_is_help=True,
)
console = Console()

METHOD_STYLES = {
    ResolutionMethod.PUBLIC: "green",
    ResolutionMethod.SIGNED: "yellow",
    ResolutionMethod.NONE: "dim",
}


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


@app.callback()
def main_options(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log resolution and paging details")
    ] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command("init-db")
def init_db_command():
    """Create the roster tables if they don't exist."""
    from photo_roster.db import init_db

    async def _init():
        await init_db()
        console.print("[green]Database initialized.[/green]")

    try:
        run_async(_init())
    except Exception as e:
        console.print(f"[red]Error initializing database:[/red] {e}")
        raise typer.Exit(1) from None


@app.command()
def resolve(
    path: Annotated[str, typer.Argument(help="Storage key inside the photo bucket")],
    detail: Annotated[
        bool, typer.Option("--detail", help="Use the long detail-view signed URL expiry")
    ] = False,
):
    """Resolve one storage path: public probe → signed URL → placeholder."""
    expiry = settings.signed_url_expiry_detail if detail else settings.signed_url_expiry_list

    async def _resolve():
        async with StorageClient() as storage:
            resolver = PhotoResolver(storage)
            return await resolver.resolve(path, expires_in=expiry)

    resolution = run_async(_resolve())
    style = METHOD_STYLES[resolution.method]
    console.print(
        Panel(
            f"[bold]Path:[/bold] {path}\n"
            f"[bold]Method:[/bold] [{style}]{resolution.method.value}[/{style}]\n"
            f"[bold]URL:[/bold] {resolution.url or '-'}",
            title="Photo resolution",
        )
    )
    if resolution.url is None:
        raise typer.Exit(1)


@asynccontextmanager
async def open_source(backend: str | None) -> AsyncIterator[DataSource]:
    """Yield the configured data source and close it afterwards."""
    source = build_data_source(backend)
    try:
        yield source
    finally:
        await source.aclose()


@app.command()
def browse(
    pages: Annotated[int, typer.Option("--pages", "-p", help="Maximum pages to load")] = 1,
    backend: Annotated[
        str | None, typer.Option("--backend", help="Data backend: sql or rest")
    ] = None,
    search: Annotated[
        str | None, typer.Option("--search", "-s", help="Filter loaded rows")
    ] = None,
):
    """Load the roster page by page and show each row's photo outcome."""
    if pages < 1:
        console.print("[red]Error:[/red] --pages must be at least 1")
        raise typer.Exit(1)

    async def _browse() -> ListSession:
        async with StorageClient() as storage, open_source(backend) as source:
            session = ListSession(PageFetcher(source), PhotoResolver(storage))
            await session.open()
            while session.last_error is None and session.has_more:
                if session.snapshot().page_index + 1 >= pages:
                    break
                await session.load_more()
            return session

    try:
        session = run_async(_browse())
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if session.last_error is not None:
        console.print(f"[red]Error loading page:[/red] {session.last_error}")

    records = session.search(search) if search else list(session.items)
    table = Table(title=f"Roster ({len(records)} rows)")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Age", justify="right")
    table.add_column("Location")
    table.add_column("Photo")
    for record in records:
        view = session.photo_for(record)
        style = METHOD_STYLES[record.resolution_method]
        photo = (
            f"[{style}]{record.resolution_method.value}[/{style}]"
            if view.shows_photo
            else f"[dim]({view.placeholder.initial})[/dim]"
        )
        table.add_row(
            record.id[:8],
            record.full_name,
            str(record.age) if record.age is not None else "-",
            record.location_label,
            photo,
        )
    console.print(table)
    if session.has_more:
        console.print("[dim]More results available[/dim]")
    else:
        console.print("[dim]No more results[/dim]")

    if session.last_error is not None:
        raise typer.Exit(1)


@app.command()
def stats():
    """Show roster row counts (SQL backend)."""
    from photo_roster.db import async_session_factory

    async def _stats():
        async with async_session_factory() as db:
            total = (await db.execute(select(func.count()).select_from(Person))).scalar()
            with_photo = (
                await db.execute(
                    select(func.count()).select_from(Person).where(Person.image_path.is_not(None))
                )
            ).scalar()
            active = (
                await db.execute(
                    select(func.count()).select_from(Person).where(Person.active.is_(True))
                )
            ).scalar()
        return total, with_photo, active

    try:
        total, with_photo, active = run_async(_stats())
    except Exception as e:
        console.print(f"[red]Error reading database:[/red] {e}")
        raise typer.Exit(1) from None

    pages = -(-total // settings.page_size) if total else 0
    console.print(
        Panel(
            f"[bold]People:[/bold] {total}\n"
            f"[bold]Active:[/bold] {active}\n"
            f"[bold]With photo path:[/bold] {with_photo}\n"
            f"[bold]Pages of {settings.page_size}:[/bold] {pages}",
            title="photo-roster statistics",
        )
    )


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
