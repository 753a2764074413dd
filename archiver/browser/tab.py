"""Browsing surfaces driven by the crawler.

:class:`Tab` is the surface contract plus the wiring every surface shares:
a small listener registry, the page recorder and the IPC channel.
:class:`PlaywrightTab` implements it on top of a Playwright ``Page``.

Events
------
``load-started``                      a document load began
``load-stopped``                      the load settled (success or failure)
``navigated(url, status_code)``       full-document navigation committed
``in-page-navigated(url, main)``      same-document navigation
``title-changed(title)``              ``document.title`` changed
``dom-ready(url)``                    DOMContentLoaded for the main frame
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from archiver.browser.channel import IpcHandler, MessageChannel
from archiver.browser.page_tracker import PageRecorder
from archiver.config import settings
from archiver.urls import is_content_url

if TYPE_CHECKING:
    from playwright.async_api import Frame, Page, Request, Response

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Tab:
    _next_tab_id = 0

    @classmethod
    def next_tab_id(cls) -> str:
        Tab._next_tab_id += 1
        return f"tab_{Tab._next_tab_id}"

    def __init__(
        self,
        recorder: Optional[PageRecorder] = None,
        tab_id: Optional[str] = None,
    ) -> None:
        self.id = tab_id or Tab.next_tab_id()
        self.recorder = recorder
        self.channel = MessageChannel(self.execute_javascript)
        self._listeners: dict[str, list[Listener]] = {}

        self.on("navigated", self.handle_navigation)
        self.on("in-page-navigated", self.handle_in_page_navigation)
        self.on("title-changed", self.handle_title_updated)
        self.on("dom-ready", self.handle_dom_ready)

    # ------------------------------------------------------------------
    # Listener registry
    # ------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def once(self, event: str, listener: Listener) -> None:
        def _once(*args: Any) -> Any:
            self.remove_listener(event, _once)
            return listener(*args)

        _once.listener = listener  # type: ignore[attr-defined]
        self.on(event, _once)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        for registered in listeners:
            if registered is listener or getattr(registered, "listener", None) is listener:
                listeners.remove(registered)
                return

    def emit(self, event: str, *args: Any) -> bool:
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    # ------------------------------------------------------------------
    # Surface contract (implemented by subclasses)
    # ------------------------------------------------------------------

    def get_url(self) -> str:
        raise NotImplementedError

    def get_title(self) -> str:
        raise NotImplementedError

    def is_loading(self) -> bool:
        raise NotImplementedError

    def _navigate(self, url: str) -> None:
        raise NotImplementedError

    async def execute_javascript(self, script: str) -> Any:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Shared behaviour
    # ------------------------------------------------------------------

    def load_url(self, url: str) -> None:
        if self.recorder is not None:
            self.recorder.clear()
        self._navigate(url)

    def set_ipc_handler(self, handler: Optional[IpcHandler]) -> None:
        self.channel.set_handler(handler)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.get_url(),
            "title": self.get_title(),
            "loading": self.is_loading(),
        }

    def close(self) -> None:
        self.channel.close()
        if self.recorder is not None:
            self.recorder.clear()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def handle_navigation(self, url: str, status_code: int) -> None:
        if self.recorder is not None:
            self.recorder.track_navigation(url, status_code, self.get_title())

    def handle_in_page_navigation(self, url: str, is_main_frame: bool) -> None:
        if self.recorder is not None:
            self.recorder.track_in_page_navigation(url, is_main_frame, self.get_title())

    def handle_title_updated(self, title: str) -> None:
        if self.recorder is not None:
            self.recorder.track_title_change(title)

    def handle_dom_ready(self, url: str) -> None:
        if is_content_url(url):
            self.channel.start()


# ---------------------------------------------------------------------------
# Playwright implementation
# ---------------------------------------------------------------------------

_TITLE_BINDING = "__archiverTitleChanged"

# Reports every change of document.title through the exposed binding.
_TITLE_OBSERVER_SCRIPT = """(() => {
  const notify = () => window.%(binding)s(document.title);
  const observe = () => {
    const target = document.head || document.documentElement;
    new MutationObserver(notify).observe(target, {
      subtree: true, childList: true, characterData: true,
    });
    notify();
  };
  if (document.readyState === "loading") {
    document.addEventListener("DOMContentLoaded", observe);
  } else {
    observe();
  }
})();""" % {"binding": _TITLE_BINDING}


class PlaywrightTab(Tab):
    """A :class:`Tab` backed by a Playwright ``Page``.

    Use :meth:`create` rather than the constructor: the title binding has to
    be installed before the first navigation.
    """

    def __init__(
        self,
        page: "Page",
        recorder: Optional[PageRecorder] = None,
        tab_id: Optional[str] = None,
    ) -> None:
        super().__init__(recorder=recorder, tab_id=tab_id)
        self.page = page
        self._loading = False
        self._title = ""
        self._document_pending = False
        self._status_code = 0
        self._nav_seq = 0
        self._goto_task: Optional[asyncio.Task[None]] = None

    @classmethod
    async def create(
        cls,
        page: "Page",
        recorder: Optional[PageRecorder] = None,
    ) -> PlaywrightTab:
        tab = cls(page, recorder)
        await page.expose_binding(_TITLE_BINDING, tab._on_title_binding)
        await page.add_init_script(_TITLE_OBSERVER_SCRIPT)
        page.on("request", tab._on_request)
        page.on("response", tab._on_response)
        page.on("framenavigated", tab._on_frame_navigated)
        page.on("domcontentloaded", tab._on_dom_content_loaded)
        page.on("load", tab._on_load)
        return tab

    # ------------------------------------------------------------------
    # Surface contract
    # ------------------------------------------------------------------

    def get_url(self) -> str:
        return self.page.url

    def get_title(self) -> str:
        return self._title

    def is_loading(self) -> bool:
        return self._loading

    def _navigate(self, url: str) -> None:
        self._nav_seq += 1
        self._start_loading()
        self._goto_task = asyncio.create_task(self._goto(url, self._nav_seq))

    async def execute_javascript(self, script: str) -> Any:
        return await self.page.evaluate(script)

    # ------------------------------------------------------------------
    # Playwright plumbing
    # ------------------------------------------------------------------

    async def _goto(self, url: str, seq: int) -> None:
        from playwright.async_api import Error as PlaywrightError  # noqa: PLC0415

        try:
            await self.page.goto(
                url,
                wait_until="load",
                timeout=settings.navigation_timeout * 1000,
            )
        except PlaywrightError as exc:
            # The error page left behind still counts as a settled page.
            logger.warning("Navigation to %s failed: %s", url, exc)
        finally:
            # A newer navigation owns the loading flag now.
            if seq == self._nav_seq:
                self._finish_loading()

    def _start_loading(self) -> None:
        if not self._loading:
            self._loading = True
            self.emit("load-started")

    def _finish_loading(self) -> None:
        if self._loading:
            self._loading = False
            self.emit("load-stopped")

    def _is_main_document(self, request: "Request") -> bool:
        return request.is_navigation_request() and request.frame == self.page.main_frame

    def _on_request(self, request: "Request") -> None:
        if self._is_main_document(request):
            self._document_pending = True
            self._status_code = 0
            self._start_loading()

    def _on_response(self, response: "Response") -> None:
        if self._is_main_document(response.request):
            self._status_code = response.status

    def _on_frame_navigated(self, frame: "Frame") -> None:
        if frame != self.page.main_frame:
            return
        if self._document_pending:
            self._document_pending = False
            self._title = ""
            self.emit("navigated", frame.url, self._status_code)
        else:
            self.emit("in-page-navigated", frame.url, True)

    def _on_dom_content_loaded(self, _page: "Page") -> None:
        self.emit("dom-ready", self.page.url)

    def _on_load(self, _page: "Page") -> None:
        self._finish_loading()

    def _on_title_binding(self, source: dict[str, Any], title: str) -> None:
        if source.get("frame") != self.page.main_frame or title == self._title:
            return
        self._title = title
        self.emit("title-changed", title)
