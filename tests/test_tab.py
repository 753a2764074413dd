"""Tests for archiver.browser.tab.

Mocking strategy:
- ``Tab`` behaviour is exercised through ``FakeTab`` (tests/fakes.py).
- ``PlaywrightTab`` gets a ``MagicMock`` page; Playwright event callbacks are
  invoked directly with ``SimpleNamespace`` requests, responses and frames, so
  no browser is launched.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from archiver.browser.page_tracker import PageRecorder
from archiver.browser.tab import PlaywrightTab
from archiver.urls import content_url
from tests.fakes import FakeArchive, FakeRecording, FakeTab


# ---------------------------------------------------------------------------
# Listener registry
# ---------------------------------------------------------------------------


class TestListeners:
    def test_on_and_emit(self) -> None:
        tab = FakeTab()
        seen = []
        tab.on("custom", seen.append)
        assert tab.emit("custom", 1) is True
        tab.emit("custom", 2)
        assert seen == [1, 2]

    def test_emit_without_listeners(self) -> None:
        assert FakeTab().emit("nothing-here") is False

    def test_once_fires_a_single_time(self) -> None:
        tab = FakeTab()
        seen = []
        tab.once("custom", seen.append)
        tab.emit("custom", "a")
        tab.emit("custom", "b")
        assert seen == ["a"]

    def test_remove_once_listener_by_original(self) -> None:
        tab = FakeTab()
        seen = []
        tab.once("custom", seen.append)
        tab.remove_listener("custom", seen.append)
        tab.emit("custom", "a")
        assert seen == []

    def test_to_json(self) -> None:
        tab = FakeTab(url="https://example.com/")
        data = tab.to_json()
        assert data["url"] == "https://example.com/"
        assert data["loading"] is False
        assert data["id"].startswith("tab_")


# ---------------------------------------------------------------------------
# Recorder and channel wiring
# ---------------------------------------------------------------------------


class TestWiring:
    async def test_navigation_event_reaches_recorder(self) -> None:
        archive = FakeArchive()
        recorder = PageRecorder(archive, FakeRecording(active=True))
        tab = FakeTab(recorder=recorder)
        tab.title = "Home"

        tab.emit("navigated", "https://example.com/", 200)
        tab.emit("in-page-navigated", "https://example.com/#/x", True)
        tab.emit("title-changed", "X")
        await recorder.active_page.settled()

        assert archive.calls == [
            ("upsert", "https://example.com/", "Home", None),
            ("upsert", "https://example.com/#/x", "Home", "https://example.com/"),
            ("title", 2, "X"),
        ]

    async def test_load_url_supersedes_active_tracker(self) -> None:
        recorder = PageRecorder(FakeArchive(), FakeRecording(active=True))
        tab = FakeTab(recorder=recorder)
        tab.emit("navigated", "https://example.com/", 200)
        tracker = recorder.active_page

        tab.load_url("https://example.com/next")
        await tracker.settled()
        assert tracker.superseded
        assert recorder.active_page is None

    async def test_dom_ready_on_content_url_starts_channel(self) -> None:
        tab = FakeTab()
        tab.emit("dom-ready", content_url("pages"))
        assert tab.channel.generation == 1
        assert tab.channel.active
        await tab.channel._task
        assert "advanceQueue(null)" in tab.scripts[0]

    def test_dom_ready_elsewhere_leaves_channel_idle(self) -> None:
        tab = FakeTab()
        tab.emit("dom-ready", "https://example.com/")
        assert tab.channel.generation == 0

    async def test_ipc_handler_is_forwarded(self) -> None:
        class IpcTab(FakeTab):
            def __init__(self) -> None:
                super().__init__()
                self.replies = [{"op": "list"}, None]

            async def execute_javascript(self, script):
                self.scripts.append(script)
                return self.replies.pop(0)

        tab = IpcTab()

        async def handler(request):
            return ["page-1"]

        tab.set_ipc_handler(handler)
        await tab.channel.start()
        assert '{"data": ["page-1"]}' in tab.scripts[1]


# ---------------------------------------------------------------------------
# PlaywrightTab
# ---------------------------------------------------------------------------


@pytest.fixture()
def page() -> MagicMock:
    page = MagicMock()
    page.main_frame = SimpleNamespace(url="https://example.com/")
    page.url = "https://example.com/"
    page.goto = AsyncMock()
    page.evaluate = AsyncMock(return_value=["https://example.com/a"])
    page.expose_binding = AsyncMock()
    page.add_init_script = AsyncMock()
    return page


def _document_request(page: MagicMock) -> SimpleNamespace:
    return SimpleNamespace(is_navigation_request=lambda: True, frame=page.main_frame)


class TestPlaywrightTab:
    async def test_create_registers_hooks(self, page) -> None:
        await PlaywrightTab.create(page)
        page.expose_binding.assert_awaited_once()
        page.add_init_script.assert_awaited_once()
        events = {c.args[0] for c in page.on.call_args_list}
        assert {"request", "response", "framenavigated", "domcontentloaded", "load"} <= events

    async def test_load_url_drives_loading_events(self, page) -> None:
        tab = PlaywrightTab(page)
        events = []
        tab.on("load-started", lambda: events.append("started"))
        tab.on("load-stopped", lambda: events.append("stopped"))

        tab.load_url("https://example.com/a")
        assert tab.is_loading()
        await tab._goto_task

        page.goto.assert_awaited_once()
        assert page.goto.await_args.args[0] == "https://example.com/a"
        assert not tab.is_loading()
        assert events == ["started", "stopped"]

    async def test_failed_goto_still_settles(self, page) -> None:
        from playwright.async_api import Error as PlaywrightError

        page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        tab = PlaywrightTab(page)
        tab.load_url("https://nowhere.invalid/")
        await tab._goto_task
        assert not tab.is_loading()

    async def test_superseded_goto_keeps_loading(self, page) -> None:
        tab = PlaywrightTab(page)
        tab.load_url("https://example.com/a")
        first = tab._goto_task
        tab.load_url("https://example.com/b")
        await first
        assert tab.is_loading()
        await tab._goto_task
        assert not tab.is_loading()

    def test_document_navigation_emits_navigated(self, page) -> None:
        tab = PlaywrightTab(page)
        seen = []
        tab.on("navigated", lambda url, status: seen.append((url, status)))

        request = _document_request(page)
        tab._on_request(request)
        tab._on_response(SimpleNamespace(request=request, status=200))
        tab._on_frame_navigated(page.main_frame)

        assert seen == [("https://example.com/", 200)]
        assert tab.is_loading()

    def test_history_navigation_emits_in_page(self, page) -> None:
        tab = PlaywrightTab(page)
        seen = []
        tab.on("in-page-navigated", lambda url, main: seen.append((url, main)))
        tab._on_frame_navigated(page.main_frame)
        assert seen == [("https://example.com/", True)]

    def test_sub_frame_navigation_ignored(self, page) -> None:
        tab = PlaywrightTab(page)
        seen = []
        tab.on("navigated", lambda *args: seen.append(args))
        tab.on("in-page-navigated", lambda *args: seen.append(args))
        tab._on_frame_navigated(SimpleNamespace(url="https://ads.example/"))
        assert seen == []

    def test_load_event_settles_page(self, page) -> None:
        tab = PlaywrightTab(page)
        tab._on_request(_document_request(page))
        assert tab.is_loading()
        tab._on_load(page)
        assert not tab.is_loading()

    def test_title_binding_dedupes(self, page) -> None:
        tab = PlaywrightTab(page)
        titles = []
        tab.on("title-changed", titles.append)
        source = {"frame": page.main_frame}

        tab._on_title_binding(source, "Inbox")
        tab._on_title_binding(source, "Inbox")
        tab._on_title_binding({"frame": object()}, "Ad")
        tab._on_title_binding(source, "Inbox (1)")

        assert titles == ["Inbox", "Inbox (1)"]
        assert tab.get_title() == "Inbox (1)"

    async def test_execute_javascript_evaluates_in_page(self, page) -> None:
        tab = PlaywrightTab(page)
        assert await tab.execute_javascript("1 + 1") == ["https://example.com/a"]
        page.evaluate.assert_awaited_once_with("1 + 1")
