"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``) and initialises the schema.  Chromium
is *not* started here: the first scrape launches it lazily and stores it on
``app.state.browser``.  On shutdown any running scrape is stopped, the
browser is closed and the connection released.

Routers
-------
    /scrape    start, stop and observe the crawler (SSE status stream)
    /pages     archived pages and collections
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from archiver import __version__
from archiver.db import get_connection, init_db

from archiver.api.routers import pages as pages_router
from archiver.api.routers import scrape as scrape_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup; stop crawling and close everything on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    app.state.browser = None
    app.state.scrape = None
    # Held while a scrape is admitted, including the lazy browser launch.
    app.state.scrape_lock = asyncio.Lock()
    try:
        yield
    finally:
        await scrape_router.shutdown(app)
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Re:Archive API",
        description=(
            "REST interface for the Re:Archive crawl engine.  Starts and stops "
            "rate-limited crawls, streams live progress via Server-Sent Events "
            "and lists the pages recorded into the archive."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scrape_router.router, prefix="/scrape", tags=["scrape"])
    app.include_router(pages_router.router, prefix="/pages", tags=["pages"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn archiver.api.app:app --reload
app = create_app()
