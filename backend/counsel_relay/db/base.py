"""SQLAlchemy metadata registry import for Alembic."""

from counsel_relay.models import AppSetting, Message, Participant, Room
from counsel_relay.models.base import Base

__all__ = ["Base", "Room", "Participant", "Message", "AppSetting"]
