"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from archiver.api import app

    uvicorn archiver.api:app --reload
"""

from archiver.api.app import app

__all__ = ["app"]
