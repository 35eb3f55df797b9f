"""Controlled vocabularies shared by models, schemas and services."""

from counsel_relay.schema.roles import (
    ADMIN_ROLE,
    PARTICIPANT_ROLE_VALUES,
    ROOM_STATUS_ACTIVE,
    ROOM_STATUS_CLOSED,
    SENDER_ROLE_VALUES,
    SYSTEM_ROLE,
    SYSTEM_SENDER_NAME,
    role_label,
)

__all__ = [
    "ADMIN_ROLE",
    "PARTICIPANT_ROLE_VALUES",
    "ROOM_STATUS_ACTIVE",
    "ROOM_STATUS_CLOSED",
    "SENDER_ROLE_VALUES",
    "SYSTEM_ROLE",
    "SYSTEM_SENDER_NAME",
    "role_label",
]
