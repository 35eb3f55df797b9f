"""Room, participant and admin setting schemas."""

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from counsel_relay.schemas.common import CamelModel, ensure_utc


class RoomCreateRequest(CamelModel):
    """Admin request for a new room."""

    admin_label: str = Field(min_length=1, max_length=120)

    @field_validator("admin_label")
    @classmethod
    def _strip_label(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("admin label must not be blank")
        return cleaned


class RoomStatusUpdateRequest(CamelModel):
    """Only closing is supported."""

    status: Literal["closed"]


class ParticipantRead(CamelModel):
    """Public participant view; the session id is never exposed."""

    role: str
    display_name: str


class RoomRead(CamelModel):
    """Serialized room."""

    id: str
    code: str
    admin_label: str
    status: str
    created_at: datetime
    closed_at: datetime | None = None
    participants: list[ParticipantRead] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("closed_at")
    @classmethod
    def _closed_at_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class RoomInfoRead(CamelModel):
    """Room summary shown to participants."""

    id: str
    code: str
    status: str
    participants: list[ParticipantRead] = Field(default_factory=list)


class JoinRequest(CamelModel):
    """Join a room by its short code."""

    code: str = Field(min_length=1)
    role: Literal["counselor", "client"]
    display_name: str = Field(min_length=1, max_length=120)


class JoinResult(CamelModel):
    """Session handle returned on join or re-entry."""

    room_id: str
    session_id: str


class LeaveRequest(CamelModel):
    """Leave notice payload."""

    sender_role: str = Field(min_length=1)
    sender_name: str = Field(min_length=1)


class EntryMessagePayload(CamelModel):
    """Admin-configurable entry notice posted into every new room."""

    message: str = ""
