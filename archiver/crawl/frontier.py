"""Pending-URL queue with a visited set for de-duplication."""

from __future__ import annotations

from collections import deque
from typing import Deque, Optional

from archiver.urls import strip_fragment


class Frontier:
    """FIFO of URLs awaiting a visit plus every URL ever seen.

    ``visited`` only grows.  A URL enters ``pending`` at most once, and only
    together with ``visited``, so every pending URL is also visited.
    """

    def __init__(self) -> None:
        self.visited: set[str] = set()
        self.pending: Deque[str] = deque()

    def __contains__(self, url: str) -> bool:
        return strip_fragment(url) in self.visited

    def offer_if_new(self, url: str) -> bool:
        """Enqueue *url* unless it was seen before.  Returns ``True`` if added."""
        url = strip_fragment(url)
        if url in self.visited:
            return False
        self.visited.add(url)
        self.pending.append(url)
        return True

    def mark_seen(self, url: str) -> None:
        """Record *url* as visited without queueing it."""
        self.visited.add(strip_fragment(url))

    def take_next(self) -> Optional[str]:
        """Pop the oldest pending URL, or ``None`` when the frontier is empty."""
        if not self.pending:
            return None
        return self.pending.popleft()

    def remaining(self) -> int:
        return len(self.pending)

    def visited_count(self) -> int:
        return len(self.visited)
