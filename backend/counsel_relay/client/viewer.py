"""Event-driven viewer session for one participant's view of a room."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from counsel_relay.client.gateway import MessageGateway
from counsel_relay.core.exceptions import RoomClosedError, ValidationError
from counsel_relay.schema.roles import ROOM_STATUS_ACTIVE
from counsel_relay.services.client_message_ids import new_client_message_id
from counsel_relay.services.fanout import RoomSubscription
from counsel_relay.services.reconciliation import TimelineMessage, TimelineView

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HistoryFetched:
    messages: Sequence[Any]


@dataclass(frozen=True, slots=True)
class PushReceived:
    message: Any


@dataclass(frozen=True, slots=True)
class OptimisticInsertRequested:
    message: TimelineMessage


ViewerEvent = HistoryFetched | PushReceived | OptimisticInsertRequested


@dataclass(slots=True)
class PendingSend:
    """One logical send action; its key is reused by every retry."""

    client_message_id: str
    content: str
    optimistic_id: str = ""
    attempts: int = 0
    failed: bool = False
    error: str | None = None
    committed_id: str | None = None
    created: bool | None = None

    @property
    def confirmed(self) -> bool:
        return self.committed_id is not None


class ViewerSession:
    """Single-threaded owner of one viewer's merged timeline.

    Every state change goes through :meth:`handle`, so history loads, pushes
    and optimistic inserts never interleave. A failed send raises to the caller
    and leaves its optimistic entry in place until a retry or a reload.
    """

    def __init__(
        self,
        room_id: str,
        *,
        gateway: MessageGateway,
        sender_role: str,
        sender_name: str,
        session_id: str | None = None,
        key_factory: Callable[[], str] = new_client_message_id,
    ) -> None:
        self.room_id = room_id
        self.gateway = gateway
        self.sender_role = sender_role
        self.sender_name = sender_name
        self.session_id = session_id
        self.key_factory = key_factory
        self.timeline = TimelineView(room_id)
        self.room_status = ROOM_STATUS_ACTIVE
        self.sends: list[PendingSend] = []

    @property
    def messages(self) -> list[TimelineMessage]:
        return self.timeline.messages

    @property
    def can_send(self) -> bool:
        return self.room_status == ROOM_STATUS_ACTIVE

    def handle(self, event: ViewerEvent) -> list[TimelineMessage]:
        if isinstance(event, HistoryFetched):
            return self.timeline.apply(event.messages)
        if isinstance(event, PushReceived):
            return self.timeline.apply([event.message])
        if isinstance(event, OptimisticInsertRequested):
            return self.timeline.apply([event.message])
        raise TypeError(f"Unsupported viewer event: {type(event).__name__}")

    def load_history(self) -> list[TimelineMessage]:
        """Full sync from the store; also heals any dropped pushes."""

        return self.handle(HistoryFetched(self.gateway.list_messages(self.room_id)))

    def receive_push(self, message: Any) -> list[TimelineMessage]:
        return self.handle(PushReceived(message))

    def pump(self, subscription: RoomSubscription) -> int:
        """Merge every event queued on ``subscription``; return how many."""

        events = subscription.drain()
        for event in events:
            self.handle(PushReceived(event.message))
        return len(events)

    async def follow(self, subscription: RoomSubscription) -> None:
        """Merge pushed events until the surrounding task is cancelled."""

        while True:
            event = await subscription.get()
            self.handle(PushReceived(event.message))

    def refresh_room_status(self) -> str:
        self.room_status = self.gateway.get_room_info(self.room_id).status
        return self.room_status

    def send(self, content: str) -> PendingSend:
        """Echo locally, then submit under a fresh idempotency key."""

        if not self.can_send:
            raise RoomClosedError("This room is closed.")
        trimmed = content.strip()
        if not trimmed:
            raise ValidationError("Message content cannot be empty.")

        pending = PendingSend(client_message_id=self.key_factory(), content=trimmed)
        optimistic = self.timeline.build_optimistic(
            sender_role=self.sender_role,
            sender_name=self.sender_name,
            content=trimmed,
            client_message_id=pending.client_message_id,
        )
        pending.optimistic_id = optimistic.id
        self.sends.append(pending)
        self.handle(OptimisticInsertRequested(optimistic))
        self._submit(pending)
        return pending

    def retry(self, pending: PendingSend) -> PendingSend:
        """Resubmit the same logical send with its original key."""

        if pending.confirmed:
            return pending
        self._submit(pending)
        return pending

    def orphaned(self) -> list[PendingSend]:
        return [pending for pending in self.sends if pending.failed]

    def _submit(self, pending: PendingSend) -> None:
        pending.attempts += 1
        try:
            outcome = self.gateway.submit_message(
                self.room_id,
                sender_role=self.sender_role,
                sender_name=self.sender_name,
                content=pending.content,
                client_message_id=pending.client_message_id,
                session_id=self.session_id,
            )
        except Exception as exc:
            pending.failed = True
            pending.error = str(exc)
            logger.warning(
                "viewer.send_failed room_id=%s client_message_id=%s attempts=%d error=%s",
                self.room_id,
                pending.client_message_id,
                pending.attempts,
                exc,
            )
            raise

        pending.failed = False
        pending.error = None
        pending.committed_id = outcome.message.id
        pending.created = outcome.created
        self.handle(PushReceived(outcome.message))
