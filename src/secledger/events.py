"""Structured event logger for ledger operations.

Every state transition calls emit(). Events go to the standard logger and
into a bounded in-memory buffer that the HTTP API exposes at /api/events.
Secrets and tokens never belong in ``context``.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from datetime import UTC, datetime
from typing import Any

from secledger.config import settings

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_buffer: deque[dict[str, Any]] = deque(maxlen=settings.event_buffer_size)
_ids = itertools.count(1)
_guard = threading.Lock()


def emit(
    category: str,
    severity: str,
    event_type: str,
    message: str,
    *,
    username: str | None = None,
    context: dict[str, Any] | None = None,
) -> int:
    """Record a structured event and return its ID."""
    with _guard:
        event_id = next(_ids)
        _buffer.append({
            "id": event_id,
            "timestamp": datetime.now(UTC),
            "category": category,
            "severity": severity,
            "event_type": event_type,
            "username": username,
            "message": message,
            "context": context or {},
        })
    logger.log(_LEVELS.get(severity, logging.INFO), "[event] %s/%s: %s", category, event_type, message)
    return event_id


def get_events(
    severity: str | None = None,
    category: str | None = None,
    event_type: str | None = None,
    username: str | None = None,
    after_id: int | None = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """Newest-first event query for the API."""
    with _guard:
        events = list(_buffer)

    def keep(event: dict[str, Any]) -> bool:
        if severity and event["severity"] != severity:
            return False
        if category and event["category"] != category:
            return False
        if event_type and event["event_type"] != event_type:
            return False
        if username and event["username"] != username:
            return False
        if after_id is not None and event["id"] <= after_id:
            return False
        return True

    return [e for e in reversed(events) if keep(e)][:limit]


def clear() -> None:
    with _guard:
        _buffer.clear()
