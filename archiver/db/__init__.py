"""Database layer package.

Public re-exports so callers can write::

    from archiver.db import get_connection, init_db
    from archiver.db import Archive
"""

from archiver.db.archive import Archive
from archiver.db.connection import get_connection
from archiver.db.migrations import init_db

__all__ = ["get_connection", "init_db", "Archive"]
