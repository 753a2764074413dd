"""The browser host: one Chromium page, its tab, the archive and recording.

``ArchiveBrowser`` plays the role the crawler calls "the browser": it exposes
the ``active_tab`` to drive and the ``recording`` controller to fence runs
with.

Usage::

    async with await ArchiveBrowser.launch(conn) as browser:
        runner = ScrapeRunner(browser, reporter, config)
        await runner.start()
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from archiver.browser.page_tracker import PageRecorder
from archiver.browser.tab import PlaywrightTab, Tab
from archiver.config import settings
from archiver.db.archive import Archive
from archiver.recording import RecordingController

logger = logging.getLogger(__name__)


class ArchiveBrowser:
    def __init__(
        self,
        archive: Archive,
        recording: RecordingController,
        tab: Optional[Tab] = None,
        *,
        playwright: Any = None,
        browser: Any = None,
        context: Any = None,
    ) -> None:
        self.archive = archive
        self.recording = recording
        self._tab = tab
        self._playwright = playwright
        self._browser = browser
        self._context = context

    @classmethod
    async def launch(
        cls,
        conn: sqlite3.Connection,
        *,
        headless: Optional[bool] = None,
    ) -> ArchiveBrowser:
        """Start Chromium and open a single tab wired to the archive.

        Playwright is imported lazily so the rest of the package can be used
        (and tested) without a browser install.
        """
        from playwright.async_api import async_playwright  # noqa: PLC0415

        archive = Archive(conn)
        recording = RecordingController(archive)

        if headless is None:
            headless = settings.headless

        pw = await async_playwright().start()
        try:
            browser = await pw.chromium.launch(headless=headless)
            context = await browser.new_context()
            page = await context.new_page()
            tab = await PlaywrightTab.create(page, PageRecorder(archive, recording))
        except Exception:
            await pw.stop()
            archive.close()
            raise

        logger.info("Browser launched (headless=%s)", headless)
        return cls(
            archive,
            recording,
            tab,
            playwright=pw,
            browser=browser,
            context=context,
        )

    @property
    def active_tab(self) -> Optional[Tab]:
        return self._tab

    async def close(self) -> None:
        """Flush pending archive writes, end recording and shut Chromium down."""
        tab, self._tab = self._tab, None
        if tab is not None:
            tracker = tab.recorder.active_page if tab.recorder else None
            if tracker is not None:
                await tracker.settled()
            tab.close()

        await self.recording.finish_recording_session()

        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self.archive.close()

    async def __aenter__(self) -> ArchiveBrowser:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
