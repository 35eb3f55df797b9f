"""Controlled vocabularies for rooms, participants and senders."""

from __future__ import annotations

from typing import Literal

SenderRole = Literal["counselor", "client", "admin", "system"]
ParticipantRole = Literal["counselor", "client"]
RoomStatus = Literal["active", "closed"]

SENDER_ROLE_VALUES: tuple[str, ...] = ("counselor", "client", "admin", "system")
PARTICIPANT_ROLE_VALUES: tuple[str, ...] = ("counselor", "client")

ROOM_STATUS_ACTIVE = "active"
ROOM_STATUS_CLOSED = "closed"

ADMIN_ROLE = "admin"
SYSTEM_ROLE = "system"
SYSTEM_SENDER_NAME = "시스템"

_ROLE_LABELS: dict[str, str] = {
    "counselor": "상담사",
    "client": "내담자",
}


def role_label(role: str) -> str:
    """Return the Korean display label for a participant role."""

    return _ROLE_LABELS.get(role, role)


def entered_notice(display_name: str, role: str) -> str:
    return f"{display_name}({role_label(role)})님이 입장했습니다."


def left_notice(display_name: str, role: str) -> str:
    return f"{display_name}({role_label(role)})님이 나갔습니다."
