"""Commands for browsing what the crawler recorded."""

from __future__ import annotations

from typing import Optional

import typer

from archiver.db import get_connection, init_db
from archiver.db.collections import list_collections
from archiver.db.pages import list_pages

pages_app = typer.Typer(help="Browse archived pages.", no_args_is_help=True)


@pages_app.command("list")
def pages_list(
    collection: Optional[int] = typer.Option(
        None, "--collection", help="Only pages recorded in this collection."
    ),
) -> None:
    """List archived pages."""
    conn = get_connection()
    init_db(conn)
    try:
        pages = list_pages(conn, collection_id=collection)
    finally:
        conn.close()

    if not pages:
        typer.echo("[pages list] No pages archived.")
        return
    for p in pages:
        line = f"  {p.id:>5}  [{p.collection_id}]  {p.url}  {p.title!r}"
        if p.original_url:
            line += f"  (from {p.original_url})"
        typer.echo(line)


@pages_app.command("collections")
def pages_collections() -> None:
    """List recording sessions."""
    conn = get_connection()
    init_db(conn)
    try:
        collections = list_collections(conn)
    finally:
        conn.close()

    if not collections:
        typer.echo("[pages collections] No collections yet.")
        return
    for c in collections:
        state = "finished" if c.finished_at else "open"
        typer.echo(f"  {c.id:>5}  {c.name!r}  [{state}]")
