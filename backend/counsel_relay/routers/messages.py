"""Room message retrieval and idempotent submission routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Response
from sqlalchemy.orm import Session

from counsel_relay.core.context import SessionContext, get_fanout_hub, get_session_context
from counsel_relay.core.exceptions import RelayError, http_status_for
from counsel_relay.db.dependencies import get_db
from counsel_relay.schemas.common import ApiResponse
from counsel_relay.schemas.message import MessageRead, MessageSubmitRequest
from counsel_relay.services.fanout import FanoutHub
from counsel_relay.services.messages import list_messages, submit_message


router = APIRouter(prefix="/rooms/{room_id}")


@router.get("/messages", response_model=ApiResponse[list[MessageRead]])
def get_messages(
    room_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[MessageRead]]:
    """List committed messages for a room, oldest first."""

    try:
        records = list_messages(db, room_id)
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=[MessageRead.model_validate(message) for message in records])


@router.post("/messages", response_model=ApiResponse[MessageRead], status_code=201)
def post_message(
    payload: MessageSubmitRequest,
    response: Response,
    room_id: str = Path(..., min_length=1),
    context: SessionContext = Depends(get_session_context),
    hub: FanoutHub = Depends(get_fanout_hub),
    db: Session = Depends(get_db),
) -> ApiResponse[MessageRead]:
    """Store a message once per clientMessageId.

    Answers 201 for a fresh insert and 200 with the already committed row when
    the key was seen before.
    """

    try:
        result = submit_message(
            db,
            room_id,
            sender_role=payload.sender_role,
            sender_name=payload.sender_name,
            content=payload.content,
            client_message_id=payload.client_message_id,
            context=context.with_session(payload.session_id),
            publisher=hub,
        )
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc

    response.status_code = 201 if result.created else 200
    return ApiResponse(data=MessageRead.model_validate(result.message))
