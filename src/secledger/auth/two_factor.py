"""2FA lifecycle: Unenrolled -> SecretIssued -> Enabled, and back via disable.

setup_two_factor renders the QR image *before* persisting the new secret,
so a rendering failure leaves the record untouched.
"""

from __future__ import annotations

import logging
import time

from secledger import events
from secledger.auth import qr, totp
from secledger.config import settings
from secledger.errors import FailedPrecondition, Internal, InvalidToken, require
from secledger.models import TwoFactorSetup
from secledger.store import SecurityStore

logger = logging.getLogger(__name__)

# Clock used for code validation
_now = time.time


def setup_two_factor(store: SecurityStore, username: str) -> TwoFactorSetup:
    """Issue a fresh secret and its enrollment QR code."""
    require(username=username)
    secret = totp.generate_secret()
    uri = totp.get_provisioning_uri(secret, username, issuer=settings.app_name)
    try:
        image = qr.render_data_uri(uri, box_size=settings.qr_box_size, border=settings.qr_border)
    except qr.QRRenderError as e:
        logger.error("QR rendering failed for %s", username, exc_info=True)
        raise Internal("Failed to render enrollment QR code") from e

    with store.transaction() as ledger:
        record = ledger.get_or_create(username)
        was_enabled = record.two_factor_enabled
        record.two_factor_secret = secret
        if settings.reset_two_factor_on_setup:
            record.two_factor_enabled = False

    events.emit(
        "2fa", "info", "secret_issued",
        f"2FA secret issued for {username}",
        username=username,
        context={"was_enabled": was_enabled, "still_enabled": record.two_factor_enabled},
    )
    return TwoFactorSetup(secret=secret, otpauth_url=uri, qr_code=image)


def verify_and_enable(store: SecurityStore, username: str, token: str) -> str:
    """Confirm enrollment with a code from the current step."""
    require(username=username, token=token)
    with store.transaction() as ledger:
        record = ledger.get_or_create(username)
        if not record.two_factor_secret:
            raise FailedPrecondition("2FA setup has not been started for this user")
        if not totp.verify_code(
            record.two_factor_secret, token,
            valid_window=settings.enroll_valid_window, for_time=_now(),
        ):
            events.emit("2fa", "warning", "enroll_rejected",
                        f"Invalid enrollment code for {username}", username=username)
            raise InvalidToken("Invalid 2FA token")
        record.two_factor_enabled = True

    events.emit("2fa", "info", "enabled", f"2FA enabled for {username}", username=username)
    return "2FA enabled successfully"


def disable_two_factor(store: SecurityStore, username: str) -> str:
    require(username=username)
    with store.transaction() as ledger:
        record = ledger.get_or_create(username)
        record.two_factor_enabled = False
        record.two_factor_secret = None

    events.emit("2fa", "info", "disabled", f"2FA disabled for {username}", username=username)
    return "2FA disabled successfully"


def login_verify(store: SecurityStore, username: str, token: str) -> str:
    """Check a login code with clock-skew tolerance. Never mutates the record."""
    require(username=username, token=token)
    with store.transaction() as ledger:
        record = ledger.get_or_create(username)
        secret, enabled = record.two_factor_secret, record.two_factor_enabled

    if not enabled or not secret:
        raise FailedPrecondition("2FA is not enabled for this user")
    if not totp.verify_code(secret, token, valid_window=settings.login_valid_window, for_time=_now()):
        events.emit("2fa", "warning", "login_rejected",
                    f"Invalid login code for {username}", username=username)
        raise InvalidToken("Invalid 2FA token", status_code=401)

    events.emit("2fa", "info", "login_verified", f"2FA login verified for {username}", username=username)
    return "2FA verification successful"
