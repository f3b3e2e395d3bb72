"""Buddy request / response endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from secledger import buddies
from secledger.models import Message, UserSecurity
from secledger.store import get_store

router = APIRouter(prefix="/buddy", tags=["buddies"])


class BuddyRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_user: str | None = Field(default=None, alias="from")
    to: str | None = None


class BuddyResponseBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str | None = None
    from_user: str | None = Field(default=None, alias="from")
    action: str | None = None


@router.post("/request", response_model=Message)
def request_buddy(body: BuddyRequestBody):
    return Message(message=buddies.request_buddy(get_store(), body.from_user, body.to))


@router.post("/respond", response_model=UserSecurity)
def respond_to_buddy(body: BuddyResponseBody):
    return buddies.respond_to_buddy(get_store(), body.to, body.from_user, body.action)
