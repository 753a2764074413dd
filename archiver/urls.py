"""URL helpers shared by the crawler, the recorder and the tab."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urldefrag, urlparse

from archiver.config import settings

# Path of the archive's "all pages" overview, relative to the content root.
ALL_PAGES_PATH = "pages"


def content_url(path: str = "") -> str:
    """Return *path* resolved under the archive's content root."""
    root = settings.content_root
    if not root.endswith("/"):
        root += "/"
    return root + path.lstrip("/")


def all_pages_url() -> str:
    return content_url(ALL_PAGES_PATH)


def is_content_url(url: str) -> bool:
    """``True`` if *url* is served by the archive itself."""
    return url.startswith(content_url())


def strip_fragment(url: str) -> str:
    """Drop the ``#fragment`` part of *url* (used for de-duplication)."""
    return urldefrag(url)[0]


def matching_root(url: str, root_urls: Iterable[str]) -> Optional[str]:
    """Return the first root prefix that *url* starts with, or ``None``."""
    for root in root_urls:
        if url.startswith(root):
            return root
    return None


def is_http_url(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


def default_root(url: str) -> str:
    """Directory-style prefix of *url*: ``https://a.com/x/y`` → ``https://a.com/x/``."""
    base = strip_fragment(url).split("?", 1)[0]
    parsed = urlparse(base)
    if not parsed.path or parsed.path.endswith("/"):
        return base if parsed.path else base + "/"
    return base.rsplit("/", 1)[0] + "/"
