"""Tests for archiver.crawl.frontier."""

from __future__ import annotations

import random

from archiver.crawl.frontier import Frontier


class TestFrontier:
    def test_offer_new_url(self):
        frontier = Frontier()
        assert frontier.offer_if_new("https://a.com/x") is True
        assert "https://a.com/x" in frontier
        assert frontier.remaining() == 1

    def test_duplicate_offer_is_rejected(self):
        frontier = Frontier()
        frontier.offer_if_new("https://a.com/x")
        assert frontier.offer_if_new("https://a.com/x") is False
        assert frontier.remaining() == 1

    def test_fragments_are_ignored(self):
        frontier = Frontier()
        frontier.offer_if_new("https://a.com/x#one")
        assert frontier.offer_if_new("https://a.com/x#two") is False
        assert frontier.take_next() == "https://a.com/x"

    def test_fifo_order(self):
        frontier = Frontier()
        for url in ("https://a.com/1", "https://a.com/2", "https://a.com/3"):
            frontier.offer_if_new(url)
        assert [frontier.take_next() for _ in range(3)] == [
            "https://a.com/1",
            "https://a.com/2",
            "https://a.com/3",
        ]
        assert frontier.take_next() is None

    def test_mark_seen_blocks_later_offers(self):
        frontier = Frontier()
        frontier.mark_seen("https://a.com/landing")
        assert frontier.remaining() == 0
        assert frontier.offer_if_new("https://a.com/landing") is False

    def test_taken_urls_stay_visited(self):
        frontier = Frontier()
        frontier.offer_if_new("https://a.com/x")
        frontier.take_next()
        assert frontier.offer_if_new("https://a.com/x") is False
        assert frontier.visited_count() == 1

    def test_pending_is_always_a_subset_of_visited(self):
        rng = random.Random(7)
        frontier = Frontier()
        offered = 0
        for _ in range(300):
            url = f"https://a.com/{rng.randrange(40)}"
            op = rng.random()
            if op < 0.6:
                offered += frontier.offer_if_new(url)
            elif op < 0.8:
                frontier.mark_seen(url)
            else:
                frontier.take_next()
            assert set(frontier.pending) <= frontier.visited
            assert len(set(frontier.pending)) == len(frontier.pending)
        assert offered <= frontier.visited_count()
