"""TOTP 2FA endpoints: setup, verify (enable), disable, login check."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, field_validator

from secledger.auth import two_factor
from secledger.models import Message, TwoFactorSetup
from secledger.store import get_store

router = APIRouter(prefix="/2fa", tags=["2fa"])


class UsernameBody(BaseModel):
    username: str | None = None


class TokenBody(BaseModel):
    username: str | None = None
    token: str | None = None

    @field_validator("token", mode="before")
    @classmethod
    def _digits_as_text(cls, value):
        # JS clients often post the code as a number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


@router.post("/setup", response_model=TwoFactorSetup)
def setup(body: UsernameBody):
    return two_factor.setup_two_factor(get_store(), body.username)


@router.post("/verify", response_model=Message)
def verify(body: TokenBody):
    return Message(message=two_factor.verify_and_enable(get_store(), body.username, body.token))


@router.post("/disable", response_model=Message)
def disable(body: UsernameBody):
    return Message(message=two_factor.disable_two_factor(get_store(), body.username))


@router.post("/login", response_model=Message)
def login(body: TokenBody):
    return Message(message=two_factor.login_verify(get_store(), body.username, body.token))
