"""CRUD operations for the ``collections`` table."""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from archiver.db.models import Collection


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        started_at=row["started_at"],
        finished_at=row["finished_at"],
    )


def create_collection(conn: sqlite3.Connection, name: str) -> Collection:
    """Insert a new collection (recording session) and return it."""
    with conn:
        cursor = conn.execute(
            "INSERT INTO collections (name, started_at) VALUES (?, ?)",
            (name, int(time())),
        )
    return get_collection(conn, cursor.lastrowid)  # type: ignore[arg-type,return-value]


def get_collection(conn: sqlite3.Connection, collection_id: int) -> Optional[Collection]:
    row = conn.execute(
        "SELECT * FROM collections WHERE id = ?", (collection_id,)
    ).fetchone()
    return _row_to_collection(row) if row else None


def finish_collection(conn: sqlite3.Connection, collection_id: int) -> Collection:
    """Stamp ``finished_at`` on a collection.

    Raises:
        ValueError: If ``collection_id`` does not exist.
    """
    with conn:
        cursor = conn.execute(
            "UPDATE collections SET finished_at = ? WHERE id = ?",
            (int(time()), collection_id),
        )
    if cursor.rowcount == 0:
        raise ValueError(f"Collection not found: {collection_id!r}")
    return get_collection(conn, collection_id)  # type: ignore[return-value]


def list_collections(conn: sqlite3.Connection) -> list[Collection]:
    rows = conn.execute("SELECT * FROM collections ORDER BY id").fetchall()
    return [_row_to_collection(r) for r in rows]
