"""Security record store — durable mapping of username -> UserSecurity.

Every ledger operation runs inside ``store.transaction()``, which yields a
:class:`Ledger` of the records it reads or creates. When the block exits
cleanly, every created or modified record is written back before the
transaction returns. When it raises, nothing is written.

Two backends share that contract:

* ``JsonFileStore`` keeps a single ``{"security": {...}}`` document on disk.
  A per-path lock serializes the read-modify-write cycle, and the file is
  replaced atomically.
* ``PostgresStore`` keeps one JSONB row per username. Mutating transactions
  are serialized with ``pg_advisory_xact_lock``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import psycopg
from psycopg.types.json import Jsonb
from pydantic import ValidationError

from secledger import crypto
from secledger.config import Backend, settings
from secledger.db import sync_conn, sync_execute
from secledger.errors import Internal
from secledger.models import SecurityDocument, UserSecurity

logger = logging.getLogger(__name__)

# Fields sealed with the master key when one is configured
_SEALED_FIELDS = ("twoFactorSecret", "faceId")

# Arbitrary constant identifying the ledger's advisory lock
_ADVISORY_LOCK_KEY = 0x5EC1ED6E


def encode_record(record: UserSecurity) -> dict[str, Any]:
    """Serialize a record for storage, sealing secret fields."""
    data = record.model_dump(by_alias=True, mode="json")
    try:
        return crypto.seal_fields(data, _SEALED_FIELDS)
    except crypto.SealError as e:
        raise Internal(f"Cannot seal security record: {e}") from e


def decode_record(data: dict[str, Any]) -> UserSecurity:
    """Inverse of :func:`encode_record`."""
    try:
        data = crypto.unseal_fields(data)
    except crypto.SealError as e:
        raise Internal(f"Cannot unseal security record: {e}") from e
    return UserSecurity.model_validate(data)


class Ledger:
    """Records loaded or created inside one store transaction."""

    def __init__(self, load: Callable[[str], UserSecurity | None]) -> None:
        self._load = load
        self._records: dict[str, UserSecurity] = {}
        self._originals: dict[str, UserSecurity | None] = {}

    def get(self, username: str) -> UserSecurity | None:
        if username not in self._records:
            record = self._load(username)
            if record is None:
                return None
            self._records[username] = record
            self._originals[username] = record.model_copy(deep=True)
        return self._records[username]

    def get_or_create(self, username: str) -> UserSecurity:
        """Return the user's record, creating an empty one on first reference."""
        record = self.get(username)
        if record is None:
            logger.info("Creating security record for %s", username)
            record = UserSecurity()
            self._records[username] = record
            self._originals[username] = None
        return record

    @property
    def changed(self) -> dict[str, UserSecurity]:
        """Records created or modified since they were loaded."""
        return {u: r for u, r in self._records.items() if r != self._originals[u]}


class SecurityStore(ABC):
    """Storage interface; callers never see its granularity."""

    name: str

    @abstractmethod
    def transaction(self) -> contextlib.AbstractContextManager[Ledger]:
        ...

    @abstractmethod
    def snapshot(self) -> dict[str, UserSecurity]:
        """Read every record without locking (reporting only)."""


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------

_path_locks: dict[Path, threading.RLock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    with _path_locks_guard:
        return _path_locks.setdefault(path, threading.RLock())


class JsonFileStore(SecurityStore):
    name = "json"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).resolve()
        self._lock = _lock_for(self.path)

    def _read(self) -> dict[str, UserSecurity]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise Internal(f"Failed to read security store: {e}") from e
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
            return {
                username: decode_record(record)
                for username, record in (data.get("security") or {}).items()
            }
        except (ValueError, ValidationError) as e:
            raise Internal(f"Security store at {self.path} is corrupt: {e}") from e

    def _write(self, records: dict[str, UserSecurity]) -> None:
        document = {"security": {u: encode_record(r) for u, r in records.items()}}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise Internal(f"Failed to write security store: {e}") from e

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Ledger]:
        with self._lock:
            records = self._read()
            ledger = Ledger(records.get)
            yield ledger
            changed = ledger.changed
            if changed:
                records.update(changed)
                self._write(records)

    def snapshot(self) -> dict[str, UserSecurity]:
        with self._lock:
            return self._read()

    def document(self) -> SecurityDocument:
        return SecurityDocument(security=self.snapshot())


# ---------------------------------------------------------------------------
# PostgreSQL backend
# ---------------------------------------------------------------------------


class PostgresStore(SecurityStore):
    name = "postgres"

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Ledger]:
        try:
            with sync_conn(self.database_url) as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT pg_advisory_xact_lock(%s)", (_ADVISORY_LOCK_KEY,))

                    def load(username: str) -> UserSecurity | None:
                        cur.execute(
                            "SELECT record FROM security_records WHERE username = %s",
                            (username,),
                        )
                        row = cur.fetchone()
                        return decode_record(row["record"]) if row else None

                    ledger = Ledger(load)
                    yield ledger
                    for username, record in ledger.changed.items():
                        cur.execute(
                            """INSERT INTO security_records (username, record)
                               VALUES (%s, %s)
                               ON CONFLICT (username) DO UPDATE SET
                                   record = EXCLUDED.record,
                                   updated_at = now()""",
                            (username, Jsonb(encode_record(record))),
                        )
        except psycopg.Error as e:
            raise Internal(f"Security store unavailable: {e}") from e

    def snapshot(self) -> dict[str, UserSecurity]:
        try:
            rows = sync_execute(
                "SELECT username, record FROM security_records ORDER BY username",
                database_url=self.database_url,
            )
        except psycopg.Error as e:
            raise Internal(f"Security store unavailable: {e}") from e
        return {row["username"]: decode_record(row["record"]) for row in rows}


_store: SecurityStore | None = None


def build_store() -> SecurityStore:
    if settings.backend == Backend.POSTGRES:
        return PostgresStore(settings.database_url)
    return JsonFileStore(settings.store_path)


def get_store() -> SecurityStore:
    """Get or create the global store instance."""
    global _store
    if _store is None:
        _store = build_store()
        logger.info("Using %s security store", _store.name)
    return _store


def set_store(store: SecurityStore | None) -> None:
    """Replace the global store (tests, embedding)."""
    global _store
    _store = store
