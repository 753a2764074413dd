"""Re:Archive CLI, the entry-point for all crawler operations.

Usage:
    python cli/main.py --help

Command groups:
    db        → database setup
    crawl     → run the autonomous crawler in a browser
    pages     → browse what was archived
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from archiver.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import logging
from typing import List, Optional

import typer

from archiver.config import settings
from archiver.crawl.models import ScrapeConfig, ScrapeStatus
from archiver.crawl.runner import ScrapeRunner
from archiver.db import get_connection, init_db
from archiver.errors import PreconditionError
from archiver.urls import default_root
from cli.commands.pages import pages_app

app = typer.Typer(
    name="archiver",
    help="Re:Archive crawler CLI.",
    no_args_is_help=True,
)

# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")
app.add_typer(pages_app, name="pages")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite archive (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------
def _echo_status(_runner: ScrapeRunner, status: ScrapeStatus) -> None:
    typer.echo(
        f"[crawl] {status.state.value:<11} visited={status.pages_visited}"
        f"  remaining={status.pages_remaining}"
        f"  ppm={status.ppm:.1f}/{status.ppm_limit:g}"
    )


def _run(config: ScrapeConfig, headless: bool) -> ScrapeStatus:
    from archiver.crawl.session import run_crawl  # noqa: PLC0415

    return asyncio.run(run_crawl(config, _echo_status, headless=headless))


@app.command("crawl")
def crawl(
    first_page: str = typer.Argument(..., help="URL the crawl starts from."),
    root: Optional[List[str]] = typer.Option(
        None,
        "--root",
        help="In-scope URL prefix (repeatable).  Defaults to the first page's directory.",
    ),
    xpath: str = typer.Option(
        settings.link_xpath, "--xpath", help="XPath selecting links to follow."
    ),
    ppm: float = typer.Option(
        settings.ppm_limit, "--ppm", help="Maximum pages per minute."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Crawl without starting a recording session."
    ),
    headless: bool = typer.Option(
        settings.headless, "--headless/--headed", help="Run Chromium headless."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Crawl every in-scope page reachable from FIRST_PAGE, archiving as it goes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ScrapeConfig(
            first_page=first_page,
            root_urls=tuple(root or [default_root(first_page)]),
            link_xpath=xpath,
            ppm_limit=ppm,
            dry_run=dry_run,
        )
    except ValueError as exc:
        typer.echo(f"[crawl] Invalid configuration: {exc}")
        raise typer.Exit(1)

    typer.echo(
        f"[crawl] Starting at {first_page!r}  roots={list(config.root_urls)}"
        f"  ppm={config.ppm_limit:g}{'  (dry run)' if dry_run else ''}"
    )
    try:
        status = _run(config, headless)
    except PreconditionError as exc:
        typer.echo(f"[crawl] Cannot start: {exc}")
        raise typer.Exit(1)

    typer.echo(
        f"\n--- Crawl {status.state.value} ---\n"
        f"  Pages visited : {status.pages_visited}\n"
        f"  Left in queue : {status.pages_remaining}"
    )


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
