"""Counseling room ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from counsel_relay.models.base import Base, CreatedAtMixin, IdMixin
from counsel_relay.schema.roles import ROOM_STATUS_ACTIVE


class Room(Base, IdMixin, CreatedAtMixin):
    """Bounded chat session addressed by a short numeric code."""

    __tablename__ = "rooms"

    code: Mapped[str] = mapped_column(String(8), index=True, nullable=False)
    admin_label: Mapped[str] = mapped_column(String(120), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=ROOM_STATUS_ACTIVE, index=True, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    participants = relationship(
        "Participant",
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="Participant.created_at",
    )
