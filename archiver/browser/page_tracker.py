"""Keeps archive page records in step with what a tab is showing.

One :class:`PageTracker` exists per full-document navigation while recording.
It resolves the archive page for the navigation's root URL and follows the
same-document navigations and title changes that happen afterwards.  Archive
writes complete asynchronously; writes for one tracker are chained so they
apply in event order, and a tracker superseded by a newer navigation drops
whatever it has not applied yet.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PageTracker:
    """Tracks URL and title changes in the context of a single navigation."""

    def __init__(
        self,
        archive: Any,
        collection_id: int,
        root_url: str,
        initial_title: str,
    ) -> None:
        self.archive = archive
        self.collection_id = collection_id
        # URL of the full-page navigation.
        self.root_url = root_url
        # Archive page ID of the full-page navigation.
        self.root_page_id: Optional[int] = None
        # Archive page ID of the most recent in-page navigation.
        self.current_page_id: Optional[int] = None
        self.superseded = False
        self._tail: Optional[asyncio.Future[None]] = None
        self._enqueue(lambda: self._resolve_root(initial_title))

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    def track_in_page_navigation(self, url: str, title: str) -> None:
        self._enqueue(lambda: self._resolve_in_page(url, title))

    def track_title_change(self, title: str) -> None:
        self._enqueue(lambda: self._update_title(title))

    def supersede(self) -> None:
        """Abandon every update that has not been applied yet."""
        self.superseded = True

    async def settled(self) -> None:
        """Wait until every queued update has run (or been dropped)."""
        while self._tail is not None and not self._tail.done():
            await self._tail

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _enqueue(self, step: Callable[[], Awaitable[None]]) -> None:
        previous = self._tail
        self._tail = asyncio.ensure_future(self._run_after(previous, step))

    async def _run_after(
        self,
        previous: Optional[asyncio.Future[None]],
        step: Callable[[], Awaitable[None]],
    ) -> None:
        if previous is not None:
            await previous
        if self.superseded:
            return
        try:
            await step()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Archive update for %s failed: %s", self.root_url, exc)

    async def _resolve_root(self, title: str) -> None:
        page_id = await self.archive.upsert_page(
            self.collection_id, self.root_url, title
        )
        if self.superseded:
            return
        self.root_page_id = self.current_page_id = page_id

    async def _resolve_in_page(self, url: str, title: str) -> None:
        if self.root_page_id is None:
            return
        page_id = await self.archive.upsert_page(
            self.collection_id,
            url,
            title,
            original_url=None if url == self.root_url else self.root_url,
        )
        if self.superseded:
            return
        self.current_page_id = page_id

    async def _update_title(self, title: str) -> None:
        if self.current_page_id is None:
            return
        await self.archive.set_page_title(self.current_page_id, title)


class PageRecorder:
    """Owns the live :class:`PageTracker` of one tab."""

    def __init__(self, archive: Any, recording: Any) -> None:
        self.archive = archive
        self.recording = recording
        self.active_page: Optional[PageTracker] = None

    def _recording(self) -> bool:
        return self.recording.is_recording_active()

    def track_navigation(
        self, url: str, status_code: int, title: str
    ) -> Optional[PageTracker]:
        """Start a new binding for a full-document navigation to *url*."""
        self.clear()
        if (
            self._recording()
            and not self.recording.url_is_excluded(url)
            and status_code > 0
            and self.recording.collection_id is not None
        ):
            self.active_page = PageTracker(
                self.archive, self.recording.collection_id, url, title
            )
        return self.active_page

    def track_in_page_navigation(
        self, url: str, is_main_frame: bool, title: str
    ) -> None:
        if self._recording() and is_main_frame and self.active_page is not None:
            self.active_page.track_in_page_navigation(url, title)

    def track_title_change(self, title: str) -> None:
        if self._recording() and self.active_page is not None:
            self.active_page.track_title_change(title)

    def clear(self) -> None:
        if self.active_page is not None:
            self.active_page.supersede()
        self.active_page = None
