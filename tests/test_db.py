"""Database layer tests.

All tests use an in-memory SQLite database so each fixture gets a fresh,
isolated archive and nothing is written to ``~/.archiver_data``.
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from archiver.db import Archive
from archiver.db.collections import (
    create_collection,
    finish_collection,
    get_collection,
    list_collections,
)
from archiver.db.connection import get_connection
from archiver.db.migrations import MIGRATIONS, current_version, init_db
from archiver.db.pages import get_page, list_pages, set_page_title, upsert_page


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def collection_id(conn: sqlite3.Connection) -> int:
    return create_collection(conn, "Crawl 1").id


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_foreign_keys_enabled(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA foreign_keys").fetchone()
        assert row[0] == 1

    def test_row_factory(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1

    def test_init_db_idempotent(self, conn: sqlite3.Connection) -> None:
        init_db(conn)
        init_db(conn)
        tables = {
            r["name"]
            for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert {"collections", "pages", "schema_version"} <= tables

    def test_migrations_recorded(self, conn: sqlite3.Connection) -> None:
        assert current_version(conn) == MIGRATIONS[-1][0]
        indexes = {
            r["name"]
            for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")
        }
        assert "idx_pages_original_url" in indexes

    def test_file_database_created_in_workspace(self, isolated_workspace) -> None:
        connection = get_connection()
        try:
            init_db(connection)
        finally:
            connection.close()
        assert (isolated_workspace / "archive.db").exists()


# ---------------------------------------------------------------------------
# collections
# ---------------------------------------------------------------------------

class TestCollections:
    def test_create_and_get(self, conn: sqlite3.Connection) -> None:
        created = create_collection(conn, "Docs crawl")
        fetched = get_collection(conn, created.id)
        assert fetched == created
        assert fetched.finished_at is None
        assert fetched.started_at > 0

    def test_finish_stamps_time(self, conn: sqlite3.Connection, collection_id: int) -> None:
        finished = finish_collection(conn, collection_id)
        assert finished.finished_at is not None

    def test_finish_unknown_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            finish_collection(conn, 999)

    def test_get_unknown_returns_none(self, conn: sqlite3.Connection) -> None:
        assert get_collection(conn, 999) is None

    def test_list_in_creation_order(self, conn: sqlite3.Connection) -> None:
        create_collection(conn, "a")
        create_collection(conn, "b")
        assert [c.name for c in list_collections(conn)] == ["a", "b"]


# ---------------------------------------------------------------------------
# pages
# ---------------------------------------------------------------------------

class TestPages:
    def test_upsert_inserts(self, conn: sqlite3.Connection, collection_id: int) -> None:
        page_id = upsert_page(conn, collection_id, "https://a.com/", "Home")
        page = get_page(conn, page_id)
        assert page.url == "https://a.com/"
        assert page.title == "Home"
        assert page.original_url is None

    def test_upsert_same_url_updates_row(
        self, conn: sqlite3.Connection, collection_id: int
    ) -> None:
        first = upsert_page(conn, collection_id, "https://a.com/", "Loading")
        second = upsert_page(conn, collection_id, "https://a.com/", "Home")
        assert first == second
        assert get_page(conn, first).title == "Home"
        assert len(list_pages(conn, collection_id)) == 1

    def test_original_url_kept_on_conflict(
        self, conn: sqlite3.Connection, collection_id: int
    ) -> None:
        page_id = upsert_page(
            conn, collection_id, "https://a.com/#/x", "X", original_url="https://a.com/"
        )
        upsert_page(conn, collection_id, "https://a.com/#/x", "X again")
        assert get_page(conn, page_id).original_url == "https://a.com/"

    def test_same_url_in_two_collections(
        self, conn: sqlite3.Connection, collection_id: int
    ) -> None:
        other = create_collection(conn, "Crawl 2").id
        a = upsert_page(conn, collection_id, "https://a.com/", "Home")
        b = upsert_page(conn, other, "https://a.com/", "Home")
        assert a != b
        assert len(list_pages(conn)) == 2
        assert [p.id for p in list_pages(conn, other)] == [b]

    def test_set_title(self, conn: sqlite3.Connection, collection_id: int) -> None:
        page_id = upsert_page(conn, collection_id, "https://a.com/", "")
        set_page_title(conn, page_id, "Inbox (2)")
        assert get_page(conn, page_id).title == "Inbox (2)"

    def test_set_title_unknown_raises(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            set_page_title(conn, 999, "x")

    def test_unknown_collection_rejected(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            upsert_page(conn, 999, "https://a.com/", "")


# ---------------------------------------------------------------------------
# Archive (async facade)
# ---------------------------------------------------------------------------

class TestArchive:
    async def test_round_trip_through_worker(self, conn: sqlite3.Connection) -> None:
        archive = Archive(conn)
        try:
            collection = await archive.create_collection("Crawl")
            page_id = await archive.upsert_page(collection.id, "https://a.com/", "A")
            await archive.set_page_title(page_id, "A!")
            pages = await archive.list_pages(collection.id)
            finished = await archive.finish_collection(collection.id)
            collections = await archive.list_collections()
        finally:
            archive.close()

        assert [p.title for p in pages] == ["A!"]
        assert finished.finished_at is not None
        assert [c.id for c in collections] == [collection.id]

    async def test_errors_propagate(self, conn: sqlite3.Connection) -> None:
        archive = Archive(conn)
        try:
            with pytest.raises(ValueError):
                await archive.set_page_title(42, "nope")
        finally:
            archive.close()
