"""Message gateway adapters used by viewer sessions."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from http import client as http_client
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from sqlalchemy.orm import Session

from counsel_relay.core.context import SessionContext
from counsel_relay.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RelayError,
    StoreError,
    ValidationError,
)
from counsel_relay.schemas.message import MessageRead
from counsel_relay.schemas.room import RoomInfoRead
from counsel_relay.services.messages import MessagePublisher, list_messages, submit_message
from counsel_relay.services.rooms import get_room


@dataclass(frozen=True, slots=True)
class SubmitOutcome:
    """Committed row plus whether this attempt created it."""

    message: MessageRead
    created: bool


class MessageGateway(Protocol):
    """Server operations a viewer session depends on."""

    def list_messages(self, room_id: str) -> list[MessageRead]:
        """Committed history of the room."""

    def submit_message(
        self,
        room_id: str,
        *,
        sender_role: str,
        sender_name: str,
        content: str,
        client_message_id: str,
        session_id: str | None,
    ) -> SubmitOutcome:
        """Send one message; replays with a known key return the original row."""

    def get_room_info(self, room_id: str) -> RoomInfoRead:
        """Current room status and occupants."""


_ERROR_BY_STATUS: dict[int, type[RelayError]] = {
    400: ValidationError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
}


@dataclass(slots=True)
class HttpMessageGateway:
    """JSON-over-HTTP gateway against a running relay API."""

    base_url: str
    admin_token: str | None = None
    timeout_seconds: int = 15

    def list_messages(self, room_id: str) -> list[MessageRead]:
        _, payload = self._request("GET", f"/rooms/{_quote(room_id)}/messages")
        return [MessageRead.model_validate(item) for item in payload["data"]]

    def submit_message(
        self,
        room_id: str,
        *,
        sender_role: str,
        sender_name: str,
        content: str,
        client_message_id: str,
        session_id: str | None,
    ) -> SubmitOutcome:
        status, payload = self._request(
            "POST",
            f"/rooms/{_quote(room_id)}/messages",
            body={
                "senderRole": sender_role,
                "senderName": sender_name,
                "content": content,
                "sessionId": session_id,
                "clientMessageId": client_message_id,
            },
        )
        return SubmitOutcome(message=MessageRead.model_validate(payload["data"]), created=status == 201)

    def get_room_info(self, room_id: str) -> RoomInfoRead:
        _, payload = self._request("GET", f"/rooms/{_quote(room_id)}/info")
        return RoomInfoRead.model_validate(payload["data"])

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> tuple[int, dict[str, Any]]:
        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.admin_token:
            headers["X-Admin-Token"] = self.admin_token
        req = urllib_request.Request(
            url=f"{self.base_url.rstrip('/')}{path}",
            data=data,
            method=method,
            headers=headers,
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                status = resp.status
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = _error_detail(exc.read().decode("utf-8", errors="replace"))
            error_type = _ERROR_BY_STATUS.get(exc.code, StoreError)
            raise error_type(f"HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise StoreError(f"Relay request failed: {exc.reason}") from exc
        except (OSError, http_client.HTTPException) as exc:
            raise StoreError(f"Relay request failed: {exc!r}") from exc

        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError("Relay returned a non-JSON response") from exc
        if not isinstance(decoded, dict) or "data" not in decoded:
            raise StoreError("Relay returned an unexpected response envelope")
        return status, decoded


class LocalMessageGateway:
    """In-process gateway calling the services directly (scripts and tests)."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        publisher: MessagePublisher | None = None,
        is_admin: bool = False,
    ) -> None:
        self.session_factory = session_factory
        self.publisher = publisher
        self.is_admin = is_admin

    def list_messages(self, room_id: str) -> list[MessageRead]:
        with self.session_factory() as db:
            return [MessageRead.model_validate(message) for message in list_messages(db, room_id)]

    def submit_message(
        self,
        room_id: str,
        *,
        sender_role: str,
        sender_name: str,
        content: str,
        client_message_id: str,
        session_id: str | None,
    ) -> SubmitOutcome:
        with self.session_factory() as db:
            result = submit_message(
                db,
                room_id,
                sender_role=sender_role,
                sender_name=sender_name,
                content=content,
                client_message_id=client_message_id,
                context=SessionContext(session_id=session_id, is_admin=self.is_admin),
                publisher=self.publisher,
            )
            return SubmitOutcome(message=MessageRead.model_validate(result.message), created=result.created)

    def get_room_info(self, room_id: str) -> RoomInfoRead:
        with self.session_factory() as db:
            return RoomInfoRead.model_validate(get_room(db, room_id))


def _quote(value: str) -> str:
    return urllib_parse.quote(value, safe="")


def _error_detail(raw: str) -> str:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(decoded, dict) and "detail" in decoded:
        return str(decoded["detail"])
    return raw
