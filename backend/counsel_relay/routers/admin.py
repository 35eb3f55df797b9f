"""Administrator settings routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from counsel_relay.core.context import SessionContext, require_admin
from counsel_relay.core.exceptions import RelayError, http_status_for
from counsel_relay.db.dependencies import get_db
from counsel_relay.schemas.common import ApiResponse
from counsel_relay.schemas.room import EntryMessagePayload
from counsel_relay.services.app_settings import get_entry_message, set_entry_message

router = APIRouter(prefix="/admin")


@router.get("/entry-message", response_model=ApiResponse[EntryMessagePayload])
def read_entry_message(
    _: SessionContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ApiResponse[EntryMessagePayload]:
    """Return the notice posted into new rooms."""

    return ApiResponse(data=EntryMessagePayload(message=get_entry_message(db)))


@router.put("/entry-message", response_model=ApiResponse[EntryMessagePayload])
def update_entry_message(
    payload: EntryMessagePayload,
    _: SessionContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ApiResponse[EntryMessagePayload]:
    """Replace the entry notice (trimmed, at most 600 characters)."""

    try:
        stored = set_entry_message(db, payload.message)
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=EntryMessagePayload(message=stored))
