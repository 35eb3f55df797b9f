"""Administrator-editable application settings."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from counsel_relay.core.exceptions import StoreError, ValidationError
from counsel_relay.models.app_setting import AppSetting
from counsel_relay.models.base import utc_now

ENTRY_MESSAGE_KEY = "room_entry_message"
ENTRY_MESSAGE_MAX_LENGTH = 600


def get_entry_message(db: Session) -> str:
    """Return the notice posted into every new room ("" when unset)."""

    value = db.scalar(select(AppSetting.value).where(AppSetting.key == ENTRY_MESSAGE_KEY))
    return (value or "").strip()


def set_entry_message(db: Session, message: str | None) -> str:
    """Upsert the entry notice and return the stored, trimmed value."""

    normalized = message.strip() if isinstance(message, str) else ""
    if len(normalized) > ENTRY_MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Entry message must be at most {ENTRY_MESSAGE_MAX_LENGTH} characters.")

    setting = db.get(AppSetting, ENTRY_MESSAGE_KEY)
    if setting is None:
        db.add(AppSetting(key=ENTRY_MESSAGE_KEY, value=normalized))
    else:
        setting.value = normalized
        setting.updated_at = utc_now()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError("Failed to save entry message") from exc
    return normalized
