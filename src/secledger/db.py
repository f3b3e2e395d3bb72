"""PostgreSQL connection helpers for the ``postgres`` store backend."""

from __future__ import annotations

import logging
from typing import Any

import psycopg
import psycopg.rows

from secledger.config import settings

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS security_records (
    username   TEXT PRIMARY KEY,
    record     JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


def sync_conn(database_url: str | None = None) -> psycopg.Connection[dict[str, Any]]:
    """Open a synchronous connection using project settings."""
    return psycopg.connect(database_url or settings.database_url, row_factory=psycopg.rows.dict_row)


def sync_execute(
    query: str,
    params: tuple[Any, ...] | None = None,
    database_url: str | None = None,
) -> list[dict[str, Any]]:
    """Execute query synchronously — opens and closes connection per call."""
    with sync_conn(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            conn.commit()
            if cur.description is None:
                return []
            return cur.fetchall()


def init_schema(database_url: str | None = None) -> None:
    """Create the security_records table if it does not exist."""
    sync_execute(SCHEMA, database_url=database_url)
    logger.info("security_records table ready")
