"""Recent ledger events."""

from __future__ import annotations

from fastapi import APIRouter, Query

from secledger.events import get_events

router = APIRouter(tags=["events"])


@router.get("/api/events")
def list_events(
    severity: str | None = Query(None),
    category: str | None = Query(None),
    event_type: str | None = Query(None),
    username: str | None = Query(None),
    after_id: int | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    return get_events(
        severity=severity,
        category=category,
        event_type=event_type,
        username=username,
        after_id=after_id,
        limit=limit,
    )
