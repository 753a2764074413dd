"""High-level entry point for a complete crawl.

``run_crawl`` wires together the DB layer, a freshly launched archive browser
and a :class:`ScrapeRunner` so the CLI (and scripts) can run a crawl with one
call.  SIGINT requests a cooperative stop instead of killing the run.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Optional

from archiver.browser.app import ArchiveBrowser
from archiver.config import settings
from archiver.crawl.models import ScrapeConfig, ScrapeStatus
from archiver.crawl.runner import ScrapeRunner, StatusReporter
from archiver.db import get_connection, init_db


def _install_stop_handler(runner: ScrapeRunner, pending: set[asyncio.Task[None]]) -> bool:
    """Make SIGINT request a cooperative stop; stop tasks are kept in *pending*."""
    loop = asyncio.get_running_loop()

    def _request_stop() -> None:
        task = loop.create_task(runner.stop())
        pending.add(task)
        task.add_done_callback(pending.discard)

    try:
        loop.add_signal_handler(signal.SIGINT, _request_stop)
    except (NotImplementedError, RuntimeError):
        # Not supported on this platform / loop; Ctrl-C falls back to default.
        return False
    return True


async def run_crawl(
    config: ScrapeConfig,
    reporter: StatusReporter,
    *,
    headless: Optional[bool] = None,
    db_path: Optional[Path] = None,
) -> ScrapeStatus:
    """Crawl according to *config* and return the final status.

    Opens its own DB connection and browser for the duration of the run and
    closes both on exit (success or error).

    Raises:
        PreconditionError: If the browser came up without a tab.
    """
    settings.ensure_workspace()
    conn = get_connection(db_path)
    init_db(conn)
    try:
        async with await ArchiveBrowser.launch(conn, headless=headless) as browser:
            runner = ScrapeRunner(browser, reporter, config)
            stop_tasks: set[asyncio.Task[None]] = set()
            handled = _install_stop_handler(runner, stop_tasks)
            try:
                await runner.start()
            finally:
                if handled:
                    asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
                if stop_tasks:
                    await asyncio.gather(*stop_tasks)
            return runner.current_status()
    finally:
        conn.close()
