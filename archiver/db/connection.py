"""Opening the archive database.

One connection is shared by the API request handlers and the archive's
worker thread, hence ``check_same_thread=False`` and a busy timeout.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from archiver.config import settings

_BUSY_TIMEOUT_MS = 5000


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a connection to *db_path* (default: ``settings.db_path``).

    Rows come back as :class:`sqlite3.Row`; foreign keys are enforced so a
    page can never point at a missing collection.  Pass ``":memory:"`` for a
    throwaway database.
    """
    path = db_path or settings.db_path
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
    return conn
