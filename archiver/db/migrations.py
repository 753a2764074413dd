"""Schema setup for the archive database.

``init_db(conn)`` creates the base tables from ``schema.sql`` and then applies
every numbered migration not yet recorded in ``schema_version``.  Both steps
are idempotent, so it runs on every start-up.
"""

from __future__ import annotations

import sqlite3

from archiver.config import settings

# (version, statement) pairs, applied in order.  Append only.
MIGRATIONS: list[tuple[int, str]] = [
    # In-page pages are looked up by the document they were reached from.
    (1, "CREATE INDEX IF NOT EXISTS idx_pages_original_url ON pages (original_url)"),
]


def init_db(conn: sqlite3.Connection) -> None:
    """Create the archive tables and bring the schema up to date."""
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
            )
            """
        )
    applied = current_version(conn)
    for version, statement in MIGRATIONS:
        if version <= applied:
            continue
        with conn:
            conn.execute(statement)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))


def current_version(conn: sqlite3.Connection) -> int:
    """Highest migration recorded in ``schema_version`` (0 for a fresh schema)."""
    row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return row[0]
