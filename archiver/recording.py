"""Recording session lifecycle.

A recording session is one archive collection.  Pages are only recorded
while a session is active, and never for URLs the archive serves itself.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from archiver.db.archive import Archive
from archiver.urls import is_content_url, is_http_url

logger = logging.getLogger(__name__)


class RecordingController:
    def __init__(self, archive: Archive) -> None:
        self.archive = archive
        self.collection_id: Optional[int] = None
        self._active = False

    def is_recording_active(self) -> bool:
        return self._active

    def url_is_excluded(self, url: str) -> bool:
        """``True`` for URLs that must never be written to the archive."""
        return not is_http_url(url) or is_content_url(url)

    async def start_recording_session(self, name: Optional[str] = None) -> int:
        """Open a new collection and start recording into it.

        Returns the collection ID.  A session that is already active is kept.
        """
        if self._active and self.collection_id is not None:
            return self.collection_id
        name = name or time.strftime("Crawl %Y-%m-%d %H:%M:%S")
        collection = await self.archive.create_collection(name)
        self.collection_id = collection.id
        self._active = True
        logger.info("Recording session %d started (%s)", collection.id, name)
        return collection.id

    async def finish_recording_session(self) -> None:
        if not self._active or self.collection_id is None:
            return
        self._active = False
        await self.archive.finish_collection(self.collection_id)
        logger.info("Recording session %d finished", self.collection_id)
