"""WebSocket feed of committed message inserts for one room."""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from counsel_relay.core.context import get_fanout_hub
from counsel_relay.services.fanout import FanoutHub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/rooms/{room_id}/live")
async def stream_room_messages(
    websocket: WebSocket,
    room_id: str,
    hub: FanoutHub = Depends(get_fanout_hub),
) -> None:
    """Push every message committed after the socket opened.

    History is not replayed; viewers fetch it from ``GET /rooms/{room_id}/messages``.
    """

    await websocket.accept()
    with hub.subscribe(room_id) as subscription:
        logger.info("live.connected room_id=%s", room_id)
        receive_task = asyncio.create_task(websocket.receive_text())
        try:
            while True:
                event_task = asyncio.create_task(subscription.get())
                done, _ = await asyncio.wait(
                    {event_task, receive_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if event_task in done:
                    event = event_task.result()
                    await websocket.send_json(event.model_dump(mode="json", by_alias=True))
                else:
                    event_task.cancel()
                if receive_task in done:
                    # Raises WebSocketDisconnect once the client goes away; inbound text is ignored.
                    receive_task.result()
                    receive_task = asyncio.create_task(websocket.receive_text())
        except WebSocketDisconnect:
            logger.info("live.disconnected room_id=%s", room_id)
        finally:
            receive_task.cancel()
