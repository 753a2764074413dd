"""Exception types raised by the crawl engine and the page channel."""

from __future__ import annotations

from typing import Any


class ArchiverError(Exception):
    """Base class for every error raised by this package."""


class PreconditionError(ArchiverError):
    """A crawl was started without what it needs (e.g. no active tab)."""


class HandlerMissingError(ArchiverError):
    """A channel request arrived while no IPC handler was registered."""

    def __init__(self, message: str = "no IPC handler") -> None:
        super().__init__(message)


class HandlerFailure(ArchiverError):
    """Raised by an IPC handler to send *payload* back as the error response."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload
        super().__init__(str(payload))
