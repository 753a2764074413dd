"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Collection:
    """One recording session."""

    id: int
    name: str
    started_at: int
    finished_at: int | None


@dataclass
class Page:
    id: int
    collection_id: int
    url: str
    title: str
    original_url: str | None
    created_at: int
    updated_at: int
