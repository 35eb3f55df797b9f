"""Explicit caller context and shared FastAPI dependencies."""

from __future__ import annotations

import hmac
from dataclasses import dataclass, replace

from fastapi import Depends, Header, HTTPException
from fastapi.requests import HTTPConnection

from counsel_relay.config import get_settings
from counsel_relay.services.fanout import FanoutHub


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Who is calling: a participant session, an administrator, or nobody."""

    session_id: str | None = None
    is_admin: bool = False

    def with_session(self, session_id: str | None) -> SessionContext:
        cleaned = session_id.strip() if session_id else ""
        if not cleaned:
            return self
        return replace(self, session_id=cleaned)


def is_valid_admin_token(token: str | None) -> bool:
    expected = get_settings().admin_token
    if not expected or not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def get_session_context(
    x_session_id: str | None = Header(default=None),
    x_admin_token: str | None = Header(default=None),
) -> SessionContext:
    """Build the caller context from request headers."""

    return SessionContext(
        session_id=x_session_id.strip() if x_session_id and x_session_id.strip() else None,
        is_admin=is_valid_admin_token(x_admin_token),
    )


def require_admin(context: SessionContext = Depends(get_session_context)) -> SessionContext:
    if not context.is_admin:
        raise HTTPException(status_code=401, detail="Admin authentication required")
    return context


def get_fanout_hub(connection: HTTPConnection) -> FanoutHub:
    """Return the application-owned fan-out hub."""

    return connection.app.state.fanout_hub
