"""The rate-limited crawl state machine.

A :class:`ScrapeRunner` drives a single tab through an in-scope site:

1. wait for the current page to settle,
2. count it and collect its in-scope links into the :class:`Frontier`,
3. take the next URL, wait for rate-limiter admission and navigate to it,

until the frontier is empty or :meth:`ScrapeRunner.stop` is called.  Every
step either completes immediately or suspends on exactly one external event
(a ``load-stopped`` signal, a timer, a script-evaluation result), so a run is
one asyncio task with a single background helper: the status ticker that is
alive only while a page load is awaited.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Optional, Protocol

from archiver.config import settings
from archiver.crawl.frontier import Frontier
from archiver.crawl.models import (
    ALLOWED_TRANSITIONS,
    ScrapeConfig,
    ScrapeState,
    ScrapeStatus,
)
from archiver.crawl.token_bucket import TokenBucket
from archiver.errors import PreconditionError
from archiver.urls import all_pages_url, matching_root

logger = logging.getLogger(__name__)

StatusReporter = Callable[["ScrapeRunner", ScrapeStatus], None]


class BrowserHost(Protocol):
    """What the runner needs from the browser that owns the tab."""

    @property
    def active_tab(self) -> Any: ...

    @property
    def recording(self) -> Any: ...


# ---------------------------------------------------------------------------
# Link discovery
# ---------------------------------------------------------------------------

def link_extraction_script(link_xpath: str) -> str:
    """Return a script listing the absolute, fragment-free hrefs matched by *link_xpath*.

    Only elements carrying an ``href`` attribute are considered; each value is
    resolved against ``document.baseURI``.
    """
    xpath = f"({link_xpath})[@href]"
    return f"""(function() {{
  const snap = document.evaluate(
    {json.dumps(xpath)},
    document,
    null,
    XPathResult.UNORDERED_NODE_SNAPSHOT_TYPE,
  );
  const result = [];
  for (let i = 0; i < snap.snapshotLength; i++) {{
    const url = new URL(snap.snapshotItem(i).getAttribute("href"), document.baseURI);
    url.hash = "";
    result.push(url.href);
  }}
  return result;
}}())"""


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class ScrapeRunner:
    """Crawl every in-scope page reachable from ``config.first_page``.

    Args:
        browser: Object exposing ``active_tab`` and ``recording`` (the
            recording session controller).
        reporter: Called with ``(runner, status)`` on every status report.
        config: The immutable run configuration.
        limiter: Token bucket override; defaults to ``ppm_limit / 60`` tokens
            per second with ``settings.rate_limit_burst`` capacity.
        status_interval: Seconds between status reports while a page loads.
    """

    def __init__(
        self,
        browser: BrowserHost,
        reporter: StatusReporter,
        config: ScrapeConfig,
        *,
        limiter: Optional[TokenBucket] = None,
        status_interval: Optional[float] = None,
    ) -> None:
        self.browser = browser
        self.reporter = reporter
        self.config = config
        self.limiter = limiter or TokenBucket(
            config.ppm_limit / 60, settings.rate_limit_burst
        )
        self.status_interval = (
            settings.status_interval if status_interval is None else status_interval
        )
        self.frontier = Frontier()

        self._state = ScrapeState.INITIALIZED
        self._pages_visited = 0
        self._reported_once = False
        self._stopping = False
        self._cycle_exited = asyncio.Event()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def state(self) -> ScrapeState:
        return self._state

    def is_running(self) -> bool:
        return self._state in (ScrapeState.INITIALIZED, ScrapeState.RUNNING)

    def current_status(self) -> ScrapeStatus:
        # Before anything was reported the first page is still "remaining".
        remaining = self.frontier.remaining() if self._reported_once else 1
        return ScrapeStatus(
            state=self._state,
            pages_visited=self._pages_visited,
            pages_remaining=remaining,
            ppm=self.limiter.average_rate() * 60,
            ppm_limit=self.config.ppm_limit,
        )

    def report(self) -> None:
        """Send the current status to the reporter immediately."""
        self._reported_once = True
        self.reporter(self, self.current_status())

    def _transition(self, new_state: ScrapeState) -> bool:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            return False
        logger.info("Scrape %s → %s", self._state.value, new_state.value)
        self._state = new_state
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run the crawl to completion (or cancellation).

        Any other error raised mid-run ends the run as `canceled`, with the
        recording session finished, before it propagates.

        Raises:
            PreconditionError: No active tab, or the runner was already started.
        """
        tab = self.browser.active_tab
        if tab is None:
            raise PreconditionError("No active tab")
        if self._state is not ScrapeState.INITIALIZED:
            raise PreconditionError(f"Runner already {self._state.value}")

        self._transition(ScrapeState.RUNNING)
        self.report()

        recording = self.browser.recording
        try:
            try:
                # Recording must be live before the first navigation is issued.
                if not self.config.dry_run and not recording.is_recording_active():
                    await recording.start_recording_session()

                if tab.get_url() != self.config.first_page:
                    tab.load_url(self.config.first_page)

                await self._advance_queue(tab)
            finally:
                self._cycle_exited.set()
        except Exception:
            logger.warning("Scrape aborted after %d page(s)", self._pages_visited)
            await self._abort(recording)
            raise

        if not self.config.dry_run:
            await recording.finish_recording_session()

        if self._stopping:
            # Stop requested before start(): nobody else will collect it.
            if self._transition(ScrapeState.CANCELED):
                self.report()
            return

        active = self.browser.active_tab
        if active is not None:
            active.load_url(all_pages_url())

    async def _abort(self, recording: Any) -> None:
        """Close the recording session and settle on `canceled` after a failure."""
        if not self.config.dry_run:
            try:
                await recording.finish_recording_session()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not finish recording session: %s", exc)
        if self._transition(ScrapeState.CANCELED):
            try:
                self.report()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Final status report failed: %s", exc)

    async def stop(self) -> None:
        """Request a cooperative stop and wait until the run has wound down.

        The page currently loading is allowed to finish; no further page is
        requested.  Returns immediately when the runner is not running.
        """
        self._stopping = True
        if self._state is not ScrapeState.RUNNING:
            return
        await self._cycle_exited.wait()
        if self._transition(ScrapeState.CANCELED):
            self.report()

    # ------------------------------------------------------------------
    # Advance-queue cycle
    # ------------------------------------------------------------------

    async def _advance_queue(self, tab: Any) -> None:
        while True:
            if self._stopping:
                logger.info("Stop observed after %d page(s)", self._pages_visited)
                return

            await self._wait_for_page(tab)
            await self._examine_page(tab)

            next_url = self.frontier.take_next()
            if next_url is None:
                self._transition(ScrapeState.FINISHED)
                self.report()
                return

            await self._rate_limit()
            if self._stopping:
                continue
            logger.debug("Loading %s", next_url)
            tab.load_url(next_url)

    async def _wait_for_page(self, tab: Any) -> None:
        """Suspend until *tab* has finished loading, reporting every interval."""
        if not tab.is_loading():
            return

        loaded: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _on_stop_loading(*_args: Any) -> None:
            if not loaded.done():
                loaded.set_result(None)

        tab.once("load-stopped", _on_stop_loading)
        ticker = asyncio.create_task(self._report_periodically())
        try:
            await loaded
        finally:
            ticker.cancel()

    async def _report_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.status_interval)
            self.report()

    async def _examine_page(self, tab: Any) -> None:
        self._pages_visited += 1
        self.report()

        url = tab.get_url()
        if matching_root(url, self.config.root_urls) is None:
            # Redirected out of scope: counted, but not a source of links.
            logger.debug("Out of scope after settling: %s", url)
            return

        # Might not be tracked yet if a redirect brought us here.
        self.frontier.mark_seen(url)

        links = await self._extract_links(tab)
        added = 0
        for link in links:
            if matching_root(link, self.config.root_urls) is None:
                continue
            if self.frontier.offer_if_new(link):
                added += 1
        logger.debug("%s: %d link(s), %d new", url, len(links), added)

    async def _extract_links(self, tab: Any) -> list[str]:
        script = link_extraction_script(self.config.link_xpath)
        try:
            result = await tab.execute_javascript(script)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Link extraction failed on %s: %s", tab.get_url(), exc)
            return []
        if not isinstance(result, list):
            return []
        return [link for link in result if isinstance(link, str)]

    async def _rate_limit(self) -> None:
        """Wait for one token of admission, re-checking after every wait."""
        while True:
            await asyncio.sleep(self.limiter.delay_for_tokens(1))
            if self.limiter.has_tokens(1):
                self.limiter.take_tokens(1)
                return
