"""Room and participant plumbing around the message pipeline."""

from __future__ import annotations

import logging
import secrets

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from counsel_relay.config import get_settings
from counsel_relay.core.exceptions import ConflictError, NotFoundError, StoreError
from counsel_relay.models.base import utc_now
from counsel_relay.models.participant import Participant
from counsel_relay.models.room import Room
from counsel_relay.schema.roles import ADMIN_ROLE, ROOM_STATUS_ACTIVE, ROOM_STATUS_CLOSED, entered_notice, left_notice
from counsel_relay.schemas.room import JoinResult
from counsel_relay.services.app_settings import get_entry_message
from counsel_relay.services.messages import MessagePublisher, post_system_message

logger = logging.getLogger(__name__)


def generate_room_code() -> str:
    """Four-digit code in 1000..9999."""

    return str(1000 + secrets.randbelow(9000))


def create_room(
    db: Session,
    admin_label: str,
    *,
    publisher: MessagePublisher | None = None,
    max_attempts: int | None = None,
) -> Room:
    """Create an active room with a code unused by other active rooms."""

    attempts = max_attempts if max_attempts is not None else get_settings().room_code_attempts
    code: str | None = None
    for _ in range(max(attempts, 1)):
        candidate = generate_room_code()
        taken = db.scalar(
            select(Room.id).where(Room.code == candidate, Room.status == ROOM_STATUS_ACTIVE)
        )
        if taken is None:
            code = candidate
            break
    if code is None:
        logger.error("rooms.code_exhausted attempts=%d", attempts)
        raise StoreError("Could not allocate a unique room code")

    room = Room(code=code, admin_label=admin_label.strip(), status=ROOM_STATUS_ACTIVE)
    db.add(room)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("rooms.create_failed code=%s", code)
        raise StoreError("Failed to create room") from exc
    db.refresh(room)
    logger.info("rooms.created room_id=%s code=%s", room.id, room.code)

    entry_message = get_entry_message(db)
    if entry_message:
        post_system_message(db, room.id, entry_message, publisher=publisher)
    return room


def list_rooms(db: Session) -> list[Room]:
    """All rooms, newest first, with participants loaded."""

    stmt = (
        select(Room)
        .options(selectinload(Room.participants))
        .order_by(Room.created_at.desc(), Room.id.desc())
    )
    return list(db.scalars(stmt).all())


def get_room(db: Session, room_id: str) -> Room:
    room = db.scalar(
        select(Room).options(selectinload(Room.participants)).where(Room.id == room_id)
    )
    if room is None:
        raise NotFoundError("Room not found")
    return room


def close_room(db: Session, room_id: str) -> Room:
    """Mark a room closed. Closing an already closed room is a no-op."""

    room = get_room(db, room_id)
    if room.status != ROOM_STATUS_CLOSED:
        room.status = ROOM_STATUS_CLOSED
        room.closed_at = utc_now()
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Failed to close room") from exc
        db.refresh(room)
        logger.info("rooms.closed room_id=%s", room.id)
    return room


def join_room(
    db: Session,
    *,
    code: str,
    role: str,
    display_name: str,
    publisher: MessagePublisher | None = None,
) -> JoinResult:
    """Occupy the role slot of the active room with ``code``.

    The same display name re-enters with the existing session; a different
    name for a taken role is a conflict.
    """

    clean_name = display_name.strip()
    room = db.scalar(
        select(Room).where(Room.code == code.strip(), Room.status == ROOM_STATUS_ACTIVE)
    )
    if room is None:
        raise NotFoundError("Room not found or already closed")

    participant = Participant(room_id=room.id, role=role, display_name=clean_name)
    db.add(participant)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = db.scalar(
            select(Participant).where(Participant.room_id == room.id, Participant.role == role)
        )
        if existing is None or existing.display_name != clean_name:
            raise ConflictError(f"The {role} slot of this room is already taken") from None
        participant = existing
        logger.info("rooms.reentered room_id=%s role=%s", room.id, role)
    else:
        db.refresh(participant)
        logger.info("rooms.joined room_id=%s role=%s", room.id, role)

    post_system_message(db, room.id, entered_notice(clean_name, role), publisher=publisher)
    return JoinResult(room_id=room.id, session_id=participant.session_id)


def leave_room(
    db: Session,
    room_id: str,
    *,
    sender_role: str,
    sender_name: str,
    publisher: MessagePublisher | None = None,
) -> None:
    """Post a leave notice; administrators leave silently."""

    if sender_role == ADMIN_ROLE:
        return
    get_room(db, room_id)
    post_system_message(db, room_id, left_notice(sender_name.strip(), sender_role), publisher=publisher)
