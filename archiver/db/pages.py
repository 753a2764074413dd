"""CRUD operations for the ``pages`` table.

Pages are keyed by ``(collection_id, url)``: recording the same URL twice in
one collection updates the existing row instead of adding another.
"""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from archiver.db.models import Page


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_page(row: sqlite3.Row) -> Page:
    return Page(
        id=row["id"],
        collection_id=row["collection_id"],
        url=row["url"],
        title=row["title"],
        original_url=row["original_url"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def upsert_page(
    conn: sqlite3.Connection,
    collection_id: int,
    url: str,
    title: str,
    original_url: Optional[str] = None,
) -> int:
    """Insert or update the page for *url* in *collection_id* and return its ID.

    On conflict the title is replaced and ``original_url`` is only overwritten
    when a new value is given.
    """
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO pages (collection_id, url, title, original_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (collection_id, url) DO UPDATE SET
                title = excluded.title,
                original_url = COALESCE(excluded.original_url, pages.original_url),
                updated_at = excluded.updated_at
            """,
            (collection_id, url, title or "", original_url, now, now),
        )
    row = conn.execute(
        "SELECT id FROM pages WHERE collection_id = ? AND url = ?",
        (collection_id, url),
    ).fetchone()
    return row["id"]


def set_page_title(conn: sqlite3.Connection, page_id: int, title: str) -> None:
    """Replace the stored title of a page.

    Raises:
        ValueError: If ``page_id`` does not exist.
    """
    with conn:
        cursor = conn.execute(
            "UPDATE pages SET title = ?, updated_at = ? WHERE id = ?",
            (title, int(time()), page_id),
        )
    if cursor.rowcount == 0:
        raise ValueError(f"Page not found: {page_id!r}")


def get_page(conn: sqlite3.Connection, page_id: int) -> Optional[Page]:
    """Fetch a single page by ID.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM pages WHERE id = ?", (page_id,)).fetchone()
    return _row_to_page(row) if row else None


def list_pages(
    conn: sqlite3.Connection, collection_id: Optional[int] = None
) -> list[Page]:
    """List pages in insertion order, optionally restricted to one collection."""
    if collection_id is None:
        rows = conn.execute("SELECT * FROM pages ORDER BY id").fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM pages WHERE collection_id = ? ORDER BY id",
            (collection_id,),
        ).fetchall()
    return [_row_to_page(r) for r in rows]
