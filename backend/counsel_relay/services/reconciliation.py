"""Merge engine for one viewer's local timeline of a room.

Messages reach a viewer from three places: the historical fetch, the realtime
push channel, and the viewer's own optimistic echo of a send in flight.
``merge`` folds any mix of them into one canonical sequence:

* ordered by ``created_at`` then ``id`` (remaining fields only break exact ties,
  so the result depends on the input multiset and never on arrival order);
* one entry per id, the later row in canonical order winning;
* one entry per ``client_message_id``, a committed row always replacing its
  optimistic placeholder.

Keyless (system) messages collapse only on identical ids. Rows that lack an id
or a usable timestamp are skipped so one bad row cannot poison the view.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from counsel_relay.services.client_message_ids import normalize_client_message_id

logger = logging.getLogger(__name__)

OPTIMISTIC_ID_PREFIX = "optimistic-"

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "room_id": ("room_id", "roomId"),
    "sender_role": ("sender_role", "senderRole"),
    "sender_name": ("sender_name", "senderName"),
    "client_message_id": ("client_message_id", "clientMessageId"),
    "content": ("content",),
    "created_at": ("created_at", "createdAt"),
}


@dataclass(frozen=True, slots=True)
class TimelineMessage:
    """One entry of a viewer's merged timeline."""

    id: str
    room_id: str
    sender_role: str
    sender_name: str
    content: str
    created_at: datetime
    client_message_id: str | None = None

    @property
    def optimistic(self) -> bool:
        return self.id.startswith(OPTIMISTIC_ID_PREFIX)


def new_optimistic_id() -> str:
    return f"{OPTIMISTIC_ID_PREFIX}{uuid4().hex}"


def coerce_message(row: Any) -> TimelineMessage | None:
    """Convert an API dict, schema object or ORM row; ``None`` when unusable."""

    if isinstance(row, TimelineMessage):
        created_at = _parse_timestamp(row.created_at)
        if created_at is None:
            return None
        client_message_id = normalize_client_message_id(row.client_message_id) or None
        if row.created_at.tzinfo is timezone.utc and client_message_id == row.client_message_id:
            return row
        return replace(row, created_at=created_at, client_message_id=client_message_id)

    message_id = _field(row, "id")
    if message_id is None or str(message_id).strip() == "":
        return None
    created_at = _parse_timestamp(_field(row, "created_at"))
    if created_at is None:
        return None

    client_message_id = _field(row, "client_message_id")
    if client_message_id is not None:
        client_message_id = normalize_client_message_id(str(client_message_id)) or None

    return TimelineMessage(
        id=str(message_id),
        room_id=str(_field(row, "room_id") or ""),
        sender_role=str(_field(row, "sender_role") or ""),
        sender_name=str(_field(row, "sender_name") or ""),
        content=str(_field(row, "content") or ""),
        created_at=created_at,
        client_message_id=client_message_id,
    )


def merge(existing: Iterable[Any], incoming: Iterable[Any]) -> list[TimelineMessage]:
    """Return the canonical, duplicate-free union of two message batches."""

    rows: list[TimelineMessage] = []
    for raw in (*existing, *incoming):
        message = coerce_message(raw)
        if message is None:
            logger.debug("reconciliation.row_dropped reason=missing_id_or_timestamp")
            continue
        rows.append(message)
    rows.sort(key=_canonical_key)

    by_id: dict[str, TimelineMessage] = {}
    for message in rows:
        by_id[message.id] = message

    by_client_message_id: dict[str, TimelineMessage] = {}
    for message in by_id.values():
        key = message.client_message_id
        if key is None:
            continue
        current = by_client_message_id.get(key)
        if current is None or (current.optimistic and not message.optimistic):
            by_client_message_id[key] = message

    merged = [
        message
        for message in by_id.values()
        if message.client_message_id is None or by_client_message_id[message.client_message_id] is message
    ]
    merged.sort(key=_canonical_key)
    return merged


class TimelineView:
    """Merged view of one room for one viewer.

    Keeps the canonical sequence plus a primary index by id and a secondary
    index by ``client_message_id``. Not thread-safe; a viewer feeds it from one
    serialized event loop.
    """

    def __init__(self, room_id: str, messages: Iterable[Any] = ()) -> None:
        self.room_id = room_id
        self._ordered: list[TimelineMessage] = []
        self._by_id: dict[str, TimelineMessage] = {}
        self._id_by_client_message_id: dict[str, str] = {}
        self.apply(messages)

    def __len__(self) -> int:
        return len(self._ordered)

    @property
    def messages(self) -> list[TimelineMessage]:
        return list(self._ordered)

    def apply(self, batch: Iterable[Any]) -> list[TimelineMessage]:
        """Merge a batch from any source into the view."""

        accepted: list[TimelineMessage] = []
        for raw in batch:
            message = coerce_message(raw)
            if message is None:
                logger.debug("reconciliation.row_dropped room_id=%s reason=missing_id_or_timestamp", self.room_id)
                continue
            if message.room_id and message.room_id != self.room_id:
                logger.debug(
                    "reconciliation.row_dropped room_id=%s reason=foreign_room message_room_id=%s",
                    self.room_id,
                    message.room_id,
                )
                continue
            accepted.append(message)
        if not accepted:
            return self.messages

        self._ordered = merge(self._ordered, accepted)
        self._by_id = {message.id: message for message in self._ordered}
        self._id_by_client_message_id = {
            message.client_message_id: message.id
            for message in self._ordered
            if message.client_message_id is not None
        }
        return self.messages

    def build_optimistic(
        self,
        *,
        sender_role: str,
        sender_name: str,
        content: str,
        client_message_id: str,
        now: datetime | None = None,
    ) -> TimelineMessage:
        """Create a local placeholder; it is never sent to the store."""

        return TimelineMessage(
            id=new_optimistic_id(),
            room_id=self.room_id,
            sender_role=sender_role,
            sender_name=sender_name,
            content=content,
            created_at=_parse_timestamp(now) or datetime.now(timezone.utc),
            client_message_id=normalize_client_message_id(client_message_id) or None,
        )

    def add_optimistic(self, **fields: Any) -> TimelineMessage:
        message = self.build_optimistic(**fields)
        self.apply([message])
        return message

    def get(self, message_id: str) -> TimelineMessage | None:
        return self._by_id.get(message_id)

    def get_by_client_message_id(self, client_message_id: str) -> TimelineMessage | None:
        message_id = self._id_by_client_message_id.get(normalize_client_message_id(client_message_id))
        return self._by_id.get(message_id) if message_id is not None else None

    def pending(self) -> list[TimelineMessage]:
        """Optimistic entries still waiting for their committed row."""

        return [message for message in self._ordered if message.optimistic]


def _canonical_key(message: TimelineMessage) -> tuple[Any, ...]:
    return (
        message.created_at,
        message.id,
        message.sender_role,
        message.sender_name,
        message.content,
        message.client_message_id or "",
        message.room_id,
    )


def _field(row: Any, name: str) -> Any:
    aliases = _FIELD_ALIASES[name]
    if isinstance(row, Mapping):
        for alias in aliases:
            if alias in row:
                return row[alias]
        return None
    for alias in aliases:
        value = getattr(row, alias, None)
        if value is not None:
            return value
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
