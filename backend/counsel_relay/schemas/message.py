"""Message request/response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import field_validator

from counsel_relay.schemas.common import CamelModel, ensure_utc


class MessageSubmitRequest(CamelModel):
    """Send payload. Content and key shape are checked by the gateway (400)."""

    sender_role: Literal["counselor", "client", "admin"]
    sender_name: str
    content: str
    session_id: str | None = None
    client_message_id: str | None = None


class MessageRead(CamelModel):
    """Serialized committed message."""

    id: str
    room_id: str
    sender_role: str
    sender_name: str
    client_message_id: str | None = None
    content: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class MessageInsertedEvent(CamelModel):
    """Fan-out payload announcing one committed insert."""

    type: Literal["message.inserted"] = "message.inserted"
    message: MessageRead
