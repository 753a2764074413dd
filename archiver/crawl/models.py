"""Data models for the crawl engine.

``ScrapeConfig`` is supplied once when a run is created and never changes.
``ScrapeStatus`` is an immutable snapshot; the runner builds a fresh one every
time it reports so reporters never share mutable state with the run.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class ScrapeState(str, Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    CANCELED = "canceled"
    FINISHED = "finished"

    @property
    def is_terminal(self) -> bool:
        return self in (ScrapeState.CANCELED, ScrapeState.FINISHED)


# initialized → running → (finished | canceled); nothing leaves a terminal state.
ALLOWED_TRANSITIONS: dict[ScrapeState, frozenset[ScrapeState]] = {
    ScrapeState.INITIALIZED: frozenset({ScrapeState.RUNNING}),
    ScrapeState.RUNNING: frozenset({ScrapeState.FINISHED, ScrapeState.CANCELED}),
    ScrapeState.FINISHED: frozenset(),
    ScrapeState.CANCELED: frozenset(),
}


@dataclass(frozen=True)
class ScrapeConfig:
    """Parameters of a single crawl run.

    Attributes:
        first_page: URL the crawl starts from.
        root_urls: Ordered URL prefixes; only pages starting with one of them
            are in scope.
        link_xpath: XPath expression selecting anchor-like elements.  Only
            matches carrying an ``href`` attribute are followed.
        ppm_limit: Pages-per-minute ceiling (must be positive).
        dry_run: When ``True`` no recording session is started or finished.
    """

    first_page: str
    root_urls: tuple[str, ...]
    link_xpath: str = "//a"
    ppm_limit: float = 60.0
    dry_run: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable of roots but store an immutable tuple.
        object.__setattr__(self, "root_urls", tuple(self.root_urls))
        if self.ppm_limit <= 0:
            raise ValueError(f"ppm_limit must be positive, got {self.ppm_limit!r}")
        if not self.root_urls:
            raise ValueError("at least one root URL is required")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["root_urls"] = list(self.root_urls)
        return data


@dataclass(frozen=True)
class ScrapeStatus:
    state: ScrapeState
    pages_visited: int = 0
    pages_remaining: int = 1
    ppm: float = 0.0
    ppm_limit: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "pages_visited": self.pages_visited,
            "pages_remaining": self.pages_remaining,
            "ppm": round(self.ppm, 2),
            "ppm_limit": self.ppm_limit,
        }
