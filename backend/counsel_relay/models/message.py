"""Message ORM model."""

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from counsel_relay.models.base import Base, CreatedAtMixin, IdMixin


class Message(Base, IdMixin, CreatedAtMixin):
    """Committed room message. Rows are immutable once written."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("room_id", "client_message_id", name="uq_messages_room_client_message"),
    )

    room_id: Mapped[str] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sender_role: Mapped[str] = mapped_column(String(16), nullable=False)
    sender_name: Mapped[str] = mapped_column(String(120), nullable=False)
    client_message_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
