"""Device registry and Face ID enrollment.

Devices are append-only and idempotent by ``id``; there is no removal.
"""

from __future__ import annotations

import logging

from secledger import events
from secledger.errors import require
from secledger.models import Device, UserSecurity
from secledger.store import SecurityStore

logger = logging.getLogger(__name__)


def get_security(store: SecurityStore, username: str) -> UserSecurity:
    """Return the user's record, creating an empty one on first reference."""
    require(username=username)
    with store.transaction() as ledger:
        return ledger.get_or_create(username)


def register_device(store: SecurityStore, username: str, device_id: str, name: str) -> UserSecurity:
    """Register a device unless one with the same id is already present."""
    require(username=username, id=device_id, name=name)
    with store.transaction() as ledger:
        record = ledger.get_or_create(username)
        if record.find_device(device_id) is not None:
            logger.debug("Device %s already registered for %s", device_id, username)
            return record
        record.devices.append(Device(id=device_id, name=name))

    events.emit(
        "device", "info", "registered",
        f"Device {name!r} registered for {username}",
        username=username,
        context={"device_id": device_id},
    )
    return record


def enroll_face_id(store: SecurityStore, username: str, face_id: str) -> str:
    require(username=username, faceId=face_id)
    with store.transaction() as ledger:
        ledger.get_or_create(username).face_id = face_id

    events.emit("faceid", "info", "enrolled", f"Face ID enrolled for {username}", username=username)
    return "Face ID enrolled successfully"


def remove_face_id(store: SecurityStore, username: str) -> str:
    require(username=username)
    with store.transaction() as ledger:
        ledger.get_or_create(username).face_id = None

    events.emit("faceid", "info", "removed", f"Face ID removed for {username}", username=username)
    return "Face ID removed successfully"
