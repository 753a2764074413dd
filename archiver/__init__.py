"""Re:Archive: autonomous crawl engine for a web-archiving browser."""

__version__ = "0.3.0"
