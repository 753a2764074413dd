"""Browsing surfaces: tabs, the page channel and the page recorder."""

from archiver.browser.channel import MessageChannel
from archiver.browser.page_tracker import PageRecorder, PageTracker
from archiver.browser.tab import PlaywrightTab, Tab

__all__ = ["MessageChannel", "PageRecorder", "PageTracker", "PlaywrightTab", "Tab"]
