"""Security record, device and Face ID endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from secledger import registry
from secledger.models import Message, UserSecurity
from secledger.store import get_store

router = APIRouter(tags=["security"])


class DeviceCreate(BaseModel):
    id: str | None = None
    name: str | None = None


class FaceIdEnroll(BaseModel):
    face_id: str | None = Field(default=None, alias="faceId")


@router.get("/security/{username}", response_model=UserSecurity)
def get_security(username: str):
    return registry.get_security(get_store(), username)


@router.post("/security/{username}/devices", response_model=UserSecurity)
def register_device(username: str, body: DeviceCreate):
    return registry.register_device(get_store(), username, body.id, body.name)


@router.post("/security/{username}/faceid", response_model=Message)
def enroll_face_id(username: str, body: FaceIdEnroll):
    return Message(message=registry.enroll_face_id(get_store(), username, body.face_id))


@router.delete("/security/{username}/faceid", response_model=Message)
def remove_face_id(username: str):
    return Message(message=registry.remove_face_id(get_store(), username))
