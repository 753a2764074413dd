"""Async facade over the archive tables.

The crawler and the page recorder run on the event loop; SQLite calls are
blocking, so every call is pushed onto one dedicated worker thread.  A single
worker keeps writes on the shared connection serialised.
"""

from __future__ import annotations

import asyncio
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Optional, TypeVar

from archiver.db import collections, pages
from archiver.db.models import Collection, Page

T = TypeVar("T")


class Archive:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="archive")

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, partial(fn, self.conn, *args, **kwargs)
        )

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(self, name: str) -> Collection:
        return await self._call(collections.create_collection, name)

    async def finish_collection(self, collection_id: int) -> Collection:
        return await self._call(collections.finish_collection, collection_id)

    async def list_collections(self) -> list[Collection]:
        return await self._call(collections.list_collections)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def upsert_page(
        self,
        collection_id: int,
        url: str,
        title: str,
        original_url: Optional[str] = None,
    ) -> int:
        return await self._call(
            pages.upsert_page, collection_id, url, title, original_url=original_url
        )

    async def set_page_title(self, page_id: int, title: str) -> None:
        await self._call(pages.set_page_title, page_id, title)

    async def list_pages(self, collection_id: Optional[int] = None) -> list[Page]:
        return await self._call(pages.list_pages, collection_id)

    def close(self) -> None:
        """Shut down the worker thread.  The connection stays open."""
        self._executor.shutdown(wait=True)
