"""Message store gateway: idempotent submission and ordered retrieval."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from counsel_relay.core.context import SessionContext
from counsel_relay.core.exceptions import ForbiddenError, RoomClosedError, StoreError, ValidationError
from counsel_relay.models.message import Message
from counsel_relay.models.participant import Participant
from counsel_relay.models.room import Room
from counsel_relay.schema.roles import ADMIN_ROLE, ROOM_STATUS_ACTIVE, SYSTEM_ROLE, SYSTEM_SENDER_NAME
from counsel_relay.schemas.message import MessageInsertedEvent, MessageRead
from counsel_relay.services.client_message_ids import is_client_message_id, normalize_client_message_id

logger = logging.getLogger(__name__)


class MessagePublisher(Protocol):
    """Anything that can push a committed insert to a room's viewers."""

    def publish(self, room_id: str, event: MessageInsertedEvent) -> int:
        """Deliver the event; return the number of receivers."""


@dataclass(slots=True)
class SubmitResult:
    """Outcome of one submit: the canonical row and whether this call created it."""

    message: Message
    created: bool


def list_messages(db: Session, room_id: str) -> list[Message]:
    """Return committed messages for a room ordered by creation time, then id."""

    stmt = (
        select(Message)
        .where(Message.room_id == room_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    try:
        return list(db.scalars(stmt).all())
    except SQLAlchemyError as exc:
        logger.exception("messages.list_failed room_id=%s", room_id)
        raise StoreError("Failed to load messages") from exc


def submit_message(
    db: Session,
    room_id: str,
    *,
    sender_role: str,
    sender_name: str,
    content: str,
    client_message_id: str | None,
    context: SessionContext,
    publisher: MessagePublisher | None = None,
) -> SubmitResult:
    """Persist one message at most once per (room, client_message_id).

    A uniqueness collision on the idempotency key is not an error: the row that
    won the insert is read back and returned with ``created=False``. Only a
    fresh insert is published to the fan-out channel.
    """

    trimmed_content = content.strip() if isinstance(content, str) else ""
    if not trimmed_content:
        raise ValidationError("Message content cannot be empty.")

    key = normalize_client_message_id(client_message_id)
    if not key:
        raise ValidationError("clientMessageId is required.")
    if not is_client_message_id(key):
        raise ValidationError("clientMessageId must be a UUID-v4 string.")

    _ensure_sender_allowed(db, room_id, sender_role=sender_role, context=context)
    _ensure_room_active(db, room_id)

    message = Message(
        room_id=room_id,
        sender_role=sender_role,
        sender_name=sender_name.strip(),
        client_message_id=key,
        content=trimmed_content,
    )
    db.add(message)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        existing = _find_by_client_message_id(db, room_id, key)
        if existing is None:
            logger.exception("messages.insert_failed room_id=%s client_message_id=%s", room_id, key)
            raise StoreError("Failed to store message") from exc
        logger.info(
            "messages.idempotent_replay room_id=%s client_message_id=%s message_id=%s",
            room_id,
            key,
            existing.id,
        )
        return SubmitResult(message=existing, created=False)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("messages.insert_failed room_id=%s client_message_id=%s", room_id, key)
        raise StoreError("Failed to store message") from exc

    db.refresh(message)
    logger.info(
        "messages.created room_id=%s message_id=%s sender_role=%s",
        room_id,
        message.id,
        message.sender_role,
    )
    _publish(publisher, message)
    return SubmitResult(message=message, created=True)


def post_system_message(
    db: Session,
    room_id: str,
    content: str,
    *,
    publisher: MessagePublisher | None = None,
) -> Message:
    """Store and publish a keyless system notice (join, leave, entry message)."""

    message = Message(
        room_id=room_id,
        sender_role=SYSTEM_ROLE,
        sender_name=SYSTEM_SENDER_NAME,
        client_message_id=None,
        content=content.strip(),
    )
    db.add(message)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("messages.system_insert_failed room_id=%s", room_id)
        raise StoreError("Failed to store system message") from exc
    db.refresh(message)
    _publish(publisher, message)
    return message


def _ensure_sender_allowed(
    db: Session,
    room_id: str,
    *,
    sender_role: str,
    context: SessionContext,
) -> None:
    if sender_role == ADMIN_ROLE:
        if not context.is_admin:
            raise ForbiddenError("Admin messages require admin authentication.")
        return

    if not context.session_id:
        raise ForbiddenError("Sender is not a participant of this room.")
    participant = db.scalar(
        select(Participant).where(
            Participant.room_id == room_id,
            Participant.session_id == context.session_id,
        )
    )
    if participant is None or participant.role != sender_role:
        raise ForbiddenError("Sender is not a participant of this room.")


def _ensure_room_active(db: Session, room_id: str) -> None:
    status = db.scalar(select(Room.status).where(Room.id == room_id))
    if status != ROOM_STATUS_ACTIVE:
        raise RoomClosedError("This room is closed.")


def _find_by_client_message_id(db: Session, room_id: str, client_message_id: str) -> Message | None:
    return db.scalar(
        select(Message).where(
            Message.room_id == room_id,
            Message.client_message_id == client_message_id,
        )
    )


def _publish(publisher: MessagePublisher | None, message: Message) -> None:
    if publisher is None:
        return
    event = MessageInsertedEvent(message=MessageRead.model_validate(message))
    publisher.publish(message.room_id, event)
