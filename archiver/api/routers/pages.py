"""Read-only endpoints over the archive.

Routes
------
GET /pages                 List archived pages (optionally ?collection_id=)
GET /pages/collections     List recording sessions
GET /pages/{id}            A single archived page
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from archiver.db.collections import list_collections
from archiver.db.pages import get_page, list_pages

router = APIRouter()


@router.get("", response_model=list[dict[str, Any]])
def list_pages_endpoint(
    request: Request, collection_id: Optional[int] = None
) -> list[dict[str, Any]]:
    """Return archived pages in recording order."""
    conn = request.app.state.db
    return [asdict(p) for p in list_pages(conn, collection_id=collection_id)]


@router.get("/collections", response_model=list[dict[str, Any]])
def list_collections_endpoint(request: Request) -> list[dict[str, Any]]:
    """Return every recording session."""
    conn = request.app.state.db
    return [asdict(c) for c in list_collections(conn)]


@router.get("/{page_id}", response_model=dict[str, Any])
def get_page_endpoint(page_id: int, request: Request) -> dict[str, Any]:
    page = get_page(request.app.state.db, page_id)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page not found: {page_id}")
    return asdict(page)
