"""Pydantic models for the security ledger."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class TwoFactorState(StrEnum):
    UNENROLLED = "unenrolled"
    SECRET_ISSUED = "secret_issued"
    ENABLED = "enabled"


class BuddyAction(StrEnum):
    ACCEPT = "accept"
    DECLINE = "decline"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Device(_CamelModel):
    """A device registered to a user."""

    id: str
    name: str
    added_at: datetime = Field(default_factory=utcnow, alias="addedAt")


class BuddyRequest(_CamelModel):
    """A pending buddy request, stored on the *target* user's record."""

    from_user: str = Field(alias="from")
    requested_at: datetime = Field(default_factory=utcnow, alias="requestedAt")


class UserSecurity(_CamelModel):
    """Everything the ledger knows about one username."""

    devices: list[Device] = Field(default_factory=list)
    buddy: str | None = None
    buddy_requests: list[BuddyRequest] = Field(default_factory=list, alias="buddyRequests")
    face_id: str | None = Field(default=None, alias="faceId")
    two_factor_secret: str | None = Field(default=None, alias="twoFactorSecret")
    two_factor_enabled: bool = Field(default=False, alias="twoFactorEnabled")

    @property
    def two_factor_state(self) -> TwoFactorState:
        if self.two_factor_secret is None:
            return TwoFactorState.UNENROLLED
        if self.two_factor_enabled:
            return TwoFactorState.ENABLED
        return TwoFactorState.SECRET_ISSUED

    def find_device(self, device_id: str) -> Device | None:
        return next((d for d in self.devices if d.id == device_id), None)

    def find_request(self, from_user: str) -> BuddyRequest | None:
        return next((r for r in self.buddy_requests if r.from_user == from_user), None)

    def redacted(self) -> dict:
        """JSON-ready dump with secrets masked, for logs and the CLI."""
        data = self.model_dump(by_alias=True, mode="json")
        if data["twoFactorSecret"]:
            data["twoFactorSecret"] = "***"
        if data["faceId"]:
            data["faceId"] = f"<{len(self.face_id or '')} chars>"
        return data


class SecurityDocument(BaseModel):
    """On-disk layout of the JSON file backend."""

    security: dict[str, UserSecurity] = Field(default_factory=dict)


class TwoFactorSetup(_CamelModel):
    """Result of issuing a new TOTP secret."""

    secret: str
    otpauth_url: str = Field(alias="otpauthUrl")
    qr_code: str = Field(alias="qrCode")  # data:image/png;base64,...


class Message(BaseModel):
    message: str
