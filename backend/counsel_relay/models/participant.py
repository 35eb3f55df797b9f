"""Room participant ORM model."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from counsel_relay.models.base import Base, CreatedAtMixin, IdMixin, new_uuid


class Participant(Base, IdMixin, CreatedAtMixin):
    """Role-bound occupant of a room; one per role per room."""

    __tablename__ = "participants"
    __table_args__ = (UniqueConstraint("room_id", "role", name="uq_participants_room_role"),)

    room_id: Mapped[str] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    session_id: Mapped[str] = mapped_column(String(36), default=new_uuid, unique=True, nullable=False)

    room = relationship("Room", back_populates="participants")
