"""AES-256-GCM sealing of secret record fields (TOTP secrets, Face ID blobs).

A stored record lists the fields it sealed under the ``"sealed"`` key, so
whether a value is ciphertext never depends on what the value looks like.
"""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Iterable
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from secledger.config import settings

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
SEALED_KEY = "sealed"


class SealError(Exception):
    """Missing or malformed master key, or a sealed value that will not open."""


def is_enabled() -> bool:
    return bool(settings.master_key)


def _cipher() -> AESGCM:
    if not settings.master_key:
        raise SealError("SECLEDGER_MASTER_KEY not set")
    try:
        key = base64.b64decode(settings.master_key, validate=True)
    except binascii.Error as e:
        raise SealError("SECLEDGER_MASTER_KEY is not valid base64") from e
    if len(key) != 32:
        raise SealError("SECLEDGER_MASTER_KEY must be 32 bytes (base64-encoded)")
    return AESGCM(key)


def encrypt(plaintext: str) -> str:
    """Returns base64(nonce + ciphertext)."""
    nonce = os.urandom(_NONCE_SIZE)
    return base64.b64encode(nonce + _cipher().encrypt(nonce, plaintext.encode(), None)).decode()


def decrypt(token: str) -> str:
    cipher = _cipher()
    try:
        raw = base64.b64decode(token, validate=True)
        return cipher.decrypt(raw[:_NONCE_SIZE], raw[_NONCE_SIZE:], None).decode()
    except (binascii.Error, InvalidTag, ValueError) as e:
        raise SealError("Sealed value cannot be opened with the configured key") from e


def seal_fields(data: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """Encrypt the non-null ``fields`` of ``data`` when a master key is configured."""
    if not is_enabled():
        return data
    sealed = [f for f in fields if data.get(f) is not None]
    for field in sealed:
        data[field] = encrypt(data[field])
    if sealed:
        data[SEALED_KEY] = sealed
    return data


def unseal_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Inverse of :func:`seal_fields`; only fields listed under ``"sealed"`` are decrypted."""
    data = dict(data)
    for field in data.pop(SEALED_KEY, None) or ():
        if data.get(field) is not None:
            data[field] = decrypt(data[field])
    return data
