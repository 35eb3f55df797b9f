"""ORM models package exports."""

from counsel_relay.models.app_setting import AppSetting
from counsel_relay.models.message import Message
from counsel_relay.models.participant import Participant
from counsel_relay.models.room import Room

__all__ = [
    "AppSetting",
    "Message",
    "Participant",
    "Room",
]
