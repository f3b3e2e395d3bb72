"""TOTP (Time-based One-Time Password) engine for 2FA.

Uses pyotp: RFC 6238, SHA-1, 30-second step, 6-digit codes, which is what
standard authenticator apps expect.
"""

from __future__ import annotations

import pyotp

DIGITS = 6
INTERVAL = 30


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, 32 chars = 160 bits)."""
    return pyotp.random_base32()


def get_code(secret: str, for_time: float | None = None) -> str:
    """Get the TOTP code for a secret at ``for_time`` (default: now)."""
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL)
    if for_time is None:
        return totp.now()
    return totp.at(int(for_time))


def is_well_formed(code: str | None) -> bool:
    return bool(code) and len(code) == DIGITS and code.isascii() and code.isdigit()


def verify_code(secret: str, code: str, valid_window: int = 0, for_time: float | None = None) -> bool:
    """Verify a TOTP code, accepting ``valid_window`` steps either side of now."""
    if not is_well_formed(code):
        return False
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL)
    if for_time is None:
        return totp.verify(code, valid_window=valid_window)
    return totp.verify(code, for_time=int(for_time), valid_window=valid_window)


def get_provisioning_uri(secret: str, username: str, issuer: str) -> str:
    """Get the otpauth:// URI for QR code enrollment."""
    return pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL).provisioning_uri(
        name=username, issuer_name=issuer
    )
