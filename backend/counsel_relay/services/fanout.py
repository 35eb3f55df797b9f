"""Room-keyed push channel for committed message inserts."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock

from counsel_relay.schemas.message import MessageInsertedEvent

logger = logging.getLogger(__name__)


class RoomSubscription:
    """One viewer's live feed for one room.

    Use as a context manager; leaving the block releases the subscription.
    Events committed before the subscription was opened are never replayed.
    """

    def __init__(self, hub: FanoutHub, room_id: str) -> None:
        self.hub = hub
        self.room_id = room_id
        self._queue: asyncio.Queue[MessageInsertedEvent] = asyncio.Queue()
        try:
            self._loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self.closed = False

    def __enter__(self) -> RoomSubscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.hub._release(self)

    async def get(self) -> MessageInsertedEvent:
        """Wait for the next pushed event."""

        return await self._queue.get()

    def drain(self) -> list[MessageInsertedEvent]:
        """Return queued events without waiting."""

        events: list[MessageInsertedEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return events

    def _deliver(self, event: MessageInsertedEvent) -> None:
        if self._loop is None:
            self._queue.put_nowait(event)
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            logger.debug("fanout.deliver_dropped room_id=%s reason=loop_closed", self.room_id)


class FanoutHub:
    """Fire-and-forget fan-out of committed rows to a room's current subscribers.

    Owned by the application (one per process) and handed to routes and
    services explicitly. ``publish`` is safe to call from worker threads.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[RoomSubscription]] = {}
        self._lock = Lock()

    def subscribe(self, room_id: str) -> RoomSubscription:
        subscription = RoomSubscription(self, room_id)
        with self._lock:
            self._subscribers.setdefault(room_id, set()).add(subscription)
        logger.debug("fanout.subscribed room_id=%s", room_id)
        return subscription

    def subscriber_count(self, room_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(room_id, ()))

    def publish(self, room_id: str, event: MessageInsertedEvent) -> int:
        """Deliver ``event`` to every current subscriber of ``room_id``."""

        with self._lock:
            targets = list(self._subscribers.get(room_id, ()))
        for subscription in targets:
            subscription._deliver(event)
        logger.debug(
            "fanout.published room_id=%s message_id=%s subscribers=%d",
            room_id,
            event.message.id,
            len(targets),
        )
        return len(targets)

    def _release(self, subscription: RoomSubscription) -> None:
        with self._lock:
            subscriptions = self._subscribers.get(subscription.room_id)
            if not subscriptions:
                return
            subscriptions.discard(subscription)
            if not subscriptions:
                self._subscribers.pop(subscription.room_id, None)
        logger.debug("fanout.released room_id=%s", subscription.room_id)
