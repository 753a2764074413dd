"""Crawling: token bucket, frontier and the scrape runner."""

from archiver.crawl.frontier import Frontier
from archiver.crawl.models import ScrapeConfig, ScrapeState, ScrapeStatus
from archiver.crawl.runner import ScrapeRunner
from archiver.crawl.token_bucket import TokenBucket

__all__ = [
    "Frontier",
    "ScrapeConfig",
    "ScrapeRunner",
    "ScrapeState",
    "ScrapeStatus",
    "TokenBucket",
]
