"""Room lifecycle, join and leave routes."""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from counsel_relay.core.context import SessionContext, get_fanout_hub, require_admin
from counsel_relay.core.exceptions import RelayError, http_status_for
from counsel_relay.db.dependencies import get_db
from counsel_relay.schemas.common import ApiResponse, OkResult
from counsel_relay.schemas.room import (
    JoinRequest,
    JoinResult,
    LeaveRequest,
    RoomCreateRequest,
    RoomInfoRead,
    RoomRead,
    RoomStatusUpdateRequest,
)
from counsel_relay.services.fanout import FanoutHub
from counsel_relay.services.rooms import close_room, create_room, get_room, join_room, leave_room, list_rooms

router = APIRouter()


@router.post("/rooms", response_model=ApiResponse[RoomRead], status_code=201)
def post_room(
    payload: RoomCreateRequest,
    _: SessionContext = Depends(require_admin),
    hub: FanoutHub = Depends(get_fanout_hub),
    db: Session = Depends(get_db),
) -> ApiResponse[RoomRead]:
    """Create a room with a fresh four-digit code."""

    try:
        room = create_room(db, payload.admin_label, publisher=hub)
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=RoomRead.model_validate(room))


@router.get("/rooms", response_model=ApiResponse[list[RoomRead]])
def get_rooms(
    _: SessionContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ApiResponse[list[RoomRead]]:
    """List every room, newest first."""

    return ApiResponse(data=[RoomRead.model_validate(room) for room in list_rooms(db)])


@router.patch("/rooms/{room_id}", response_model=ApiResponse[RoomRead])
def patch_room(
    payload: RoomStatusUpdateRequest,
    room_id: str = Path(..., min_length=1),
    _: SessionContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ApiResponse[RoomRead]:
    """Close a room."""

    try:
        room = close_room(db, room_id)
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=RoomRead.model_validate(room))


@router.get("/rooms/{room_id}/info", response_model=ApiResponse[RoomInfoRead])
def get_room_info(
    room_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[RoomInfoRead]:
    """Room code, status and occupants; polled by viewers to gate sending."""

    try:
        room = get_room(db, room_id)
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=RoomInfoRead.model_validate(room))


@router.post("/join", response_model=ApiResponse[JoinResult])
def post_join(
    payload: JoinRequest,
    hub: FanoutHub = Depends(get_fanout_hub),
    db: Session = Depends(get_db),
) -> ApiResponse[JoinResult]:
    """Join a room by code as counselor or client."""

    try:
        result = join_room(
            db,
            code=payload.code,
            role=payload.role,
            display_name=payload.display_name,
            publisher=hub,
        )
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=result)


@router.post("/rooms/{room_id}/leave", response_model=ApiResponse[OkResult])
def post_leave(
    payload: LeaveRequest,
    room_id: str = Path(..., min_length=1),
    hub: FanoutHub = Depends(get_fanout_hub),
    db: Session = Depends(get_db),
) -> ApiResponse[OkResult]:
    """Announce that a participant left the room."""

    try:
        leave_room(
            db,
            room_id,
            sender_role=payload.sender_role,
            sender_name=payload.sender_name,
            publisher=hub,
        )
    except RelayError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.message) from exc
    return ApiResponse(data=OkResult())
