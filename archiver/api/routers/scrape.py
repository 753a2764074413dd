"""Crawler control endpoints with Server-Sent Events (SSE) progress.

Routes
------
POST /scrape           Body: ScrapeRequest, start a crawl in the background
POST /scrape/stop      Cooperative stop; returns once the crawl has wound down
GET  /scrape/status    Latest status snapshot
GET  /scrape/events    ``text/event-stream`` of status snapshots

Only one crawl runs at a time: the archive browser has a single tab.

SSE event format
----------------
Each event is a JSON-encoded status snapshot on the ``data:`` line::

    data: {"state": "running", "pages_visited": 3, "pages_remaining": 7, ...}

The stream ends after a ``finished`` or ``canceled`` snapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from archiver.config import settings
from archiver.crawl.models import ScrapeConfig, ScrapeStatus
from archiver.crawl.runner import ScrapeRunner

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ScrapeRequest(BaseModel):
    first_page: str
    root_urls: list[str] = Field(min_length=1)
    link_xpath: str = Field(default_factory=lambda: settings.link_xpath)
    ppm_limit: float = Field(default_factory=lambda: settings.ppm_limit, gt=0)
    dry_run: bool = False

    def to_config(self) -> ScrapeConfig:
        return ScrapeConfig(
            first_page=self.first_page,
            root_urls=tuple(self.root_urls),
            link_xpath=self.link_xpath,
            ppm_limit=self.ppm_limit,
            dry_run=self.dry_run,
        )


# ---------------------------------------------------------------------------
# Job bookkeeping
# ---------------------------------------------------------------------------

@dataclass
class ScrapeJob:
    """A running (or finished) crawl plus the SSE listeners following it."""

    runner: ScrapeRunner
    task: Optional["asyncio.Task[None]"] = None
    error: Optional[str] = None
    subscribers: list["asyncio.Queue[ScrapeStatus | None]"] = field(
        default_factory=list
    )

    def publish(self, status: Optional[ScrapeStatus]) -> None:
        for queue in list(self.subscribers):
            queue.put_nowait(status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.runner.config.to_dict(),
            "status": self.runner.current_status().to_dict(),
            "error": self.error,
        }


def _sse(payload: dict[str, Any]) -> str:
    """Format a payload dict as a single SSE ``data:`` line."""
    return f"data: {json.dumps(payload)}\n\n"


async def _get_browser(request: Request) -> Any:
    """Return the app's browser, launching Chromium on first use."""
    state = request.app.state
    if state.browser is None:
        from archiver.browser.app import ArchiveBrowser  # noqa: PLC0415

        state.browser = await ArchiveBrowser.launch(state.db)
    return state.browser


def _current_job(request: Request) -> ScrapeJob:
    job: Optional[ScrapeJob] = request.app.state.scrape
    if job is None:
        raise HTTPException(status_code=404, detail="No scrape has been started")
    return job


async def _run_job(job: ScrapeJob) -> None:
    """Drive ``runner.start()`` in the background and record any failure."""
    try:
        await job.runner.start()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scrape failed")
        job.error = str(exc)
    finally:
        job.publish(None)  # sentinel


async def shutdown(app: FastAPI) -> None:
    """Stop any running scrape and close the browser (called from lifespan)."""
    job: Optional[ScrapeJob] = getattr(app.state, "scrape", None)
    if job is not None and job.runner.is_running():
        await job.runner.stop()
    browser = getattr(app.state, "browser", None)
    if browser is not None:
        await browser.close()
        app.state.browser = None


# ---------------------------------------------------------------------------
# Async SSE generator
# ---------------------------------------------------------------------------

async def _status_sse_generator(job: ScrapeJob) -> AsyncIterator[str]:
    """Yield SSE-formatted status snapshots until the crawl ends."""
    queue: asyncio.Queue[ScrapeStatus | None] = asyncio.Queue()
    job.subscribers.append(queue)
    try:
        status: Optional[ScrapeStatus] = job.runner.current_status()
        yield _sse(status.to_dict())
        done = job.task is not None and job.task.done()
        while status is not None and not status.state.is_terminal and not done:
            status = await queue.get()
            if status is not None:
                yield _sse(status.to_dict())
    finally:
        job.subscribers.remove(queue)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("", status_code=202)
async def start_scrape(body: ScrapeRequest, request: Request) -> dict[str, Any]:
    """Start a crawl in the background and return its initial status.

    Admission is serialised: a request arriving while another one is still
    launching the browser waits, then sees that crawl and gets a 409.
    """
    try:
        config = body.to_config()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    async with request.app.state.scrape_lock:
        current: Optional[ScrapeJob] = request.app.state.scrape
        if current is not None and current.runner.is_running():
            raise HTTPException(status_code=409, detail="A scrape is already running")

        browser = await _get_browser(request)
        if browser.active_tab is None:
            raise HTTPException(status_code=409, detail="No active tab")

        def _reporter(_runner: ScrapeRunner, status: ScrapeStatus) -> None:
            job.publish(status)

        job = ScrapeJob(runner=ScrapeRunner(browser, _reporter, config))
        request.app.state.scrape = job
        job.task = asyncio.create_task(_run_job(job))
    return job.to_dict()


@router.post("/stop")
async def stop_scrape(request: Request) -> dict[str, Any]:
    """Request a cooperative stop and return the final status."""
    job = _current_job(request)
    await job.runner.stop()
    return job.to_dict()


@router.get("/status")
async def scrape_status(request: Request) -> dict[str, Any]:
    return _current_job(request).to_dict()


@router.get("/events")
async def scrape_events(request: Request) -> StreamingResponse:
    """Stream status snapshots of the current crawl as SSE."""
    job = _current_job(request)
    return StreamingResponse(
        _status_sse_generator(job),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",   # disable nginx proxy buffering
        },
    )
