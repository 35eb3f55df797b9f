"""Route-level tests for status codes and error translation."""

from __future__ import annotations

import unittest

from fastapi import HTTPException, Response
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from counsel_relay.core.context import SessionContext, get_session_context, require_admin
from counsel_relay.models.base import Base
from counsel_relay.models.message import Message
from counsel_relay.models.participant import Participant
from counsel_relay.models.room import Room
from counsel_relay.routers.messages import get_messages, post_message
from counsel_relay.routers.rooms import get_room_info, post_join
from counsel_relay.schemas.message import MessageSubmitRequest
from counsel_relay.schemas.room import JoinRequest
from counsel_relay.services.fanout import FanoutHub

KEY_1 = "5d1b7c9e-2a4f-4b6d-8e0a-1c3e5a7b9d2f"


class MessageRouteTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self.db.execute(delete(Message))
        self.db.execute(delete(Participant))
        self.db.execute(delete(Room))
        self.db.commit()

        self.room = Room(code="7310", admin_label="상담", status="active")
        self.db.add(self.room)
        self.db.commit()
        self.hub = FanoutHub()
        joined = post_join(
            JoinRequest(code="7310", role="client", displayName="이내담"),
            hub=self.hub,
            db=self.db,
        )
        self.session_id = joined.data.session_id

    def tearDown(self) -> None:
        self.db.close()

    def _post(self, body: dict[str, object], context: SessionContext | None = None):
        response = Response()
        result = post_message(
            MessageSubmitRequest.model_validate(body),
            response,
            room_id=self.room.id,
            context=context or SessionContext(),
            hub=self.hub,
            db=self.db,
        )
        return response.status_code, result.data

    def _body(self, **overrides: object) -> dict[str, object]:
        body: dict[str, object] = {
            "senderRole": "client",
            "senderName": "이내담",
            "content": "안녕하세요",
            "sessionId": self.session_id,
            "clientMessageId": KEY_1,
        }
        body.update(overrides)
        return body

    def test_fresh_send_is_201_and_duplicate_is_200_with_same_id(self) -> None:
        status, created = self._post(self._body())
        self.assertEqual(status, 201)
        self.assertEqual(created.content, "안녕하세요")

        status, replayed = self._post(self._body(content="중복 전송"))
        self.assertEqual(status, 200)
        self.assertEqual(replayed.id, created.id)
        self.assertEqual(replayed.content, "안녕하세요")

    def test_validation_failures_are_400(self) -> None:
        for overrides in ({"content": "  "}, {"clientMessageId": None}, {"clientMessageId": "not-a-uuid"}):
            with self.subTest(overrides=overrides):
                with self.assertRaises(HTTPException) as ctx:
                    self._post(self._body(**overrides))
                self.assertEqual(ctx.exception.status_code, 400)

    def test_non_participant_and_closed_room_are_403(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            self._post(self._body(sessionId="someone-else"))
        self.assertEqual(ctx.exception.status_code, 403)

        self.room.status = "closed"
        self.db.commit()
        with self.assertRaises(HTTPException) as ctx:
            self._post(self._body())
        self.assertEqual(ctx.exception.status_code, 403)

    def test_header_session_is_used_when_body_omits_it(self) -> None:
        status, _ = self._post(
            self._body(sessionId=None),
            context=SessionContext(session_id=self.session_id),
        )
        self.assertEqual(status, 201)

    def test_get_messages_returns_camel_case_envelope(self) -> None:
        self._post(self._body())

        payload = get_messages(room_id=self.room.id, db=self.db).model_dump(mode="json", by_alias=True)

        contents = [item["content"] for item in payload["data"]]
        self.assertEqual(contents, ["이내담(내담자)님이 입장했습니다.", "안녕하세요"])
        self.assertEqual(payload["data"][1]["clientMessageId"], KEY_1)
        self.assertIn("createdAt", payload["data"][1])

    def test_room_info_reports_status_and_participants(self) -> None:
        info = get_room_info(room_id=self.room.id, db=self.db).data
        self.assertEqual(info.status, "active")
        self.assertEqual([(p.role, p.display_name) for p in info.participants], [("client", "이내담")])

        with self.assertRaises(HTTPException) as ctx:
            get_room_info(room_id="missing", db=self.db)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_join_conflict_is_409(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            post_join(JoinRequest(code="7310", role="client", displayName="다른 사람"), hub=self.hub, db=self.db)
        self.assertEqual(ctx.exception.status_code, 409)


class SessionContextTests(unittest.TestCase):
    def test_headers_build_context_without_admin_token_configured(self) -> None:
        context = get_session_context(x_session_id=" abc ", x_admin_token="anything")
        self.assertEqual(context.session_id, "abc")
        self.assertFalse(context.is_admin)

    def test_body_session_overrides_header_session(self) -> None:
        context = SessionContext(session_id="header").with_session("body")
        self.assertEqual(context.session_id, "body")
        self.assertEqual(SessionContext(session_id="header").with_session(None).session_id, "header")

    def test_admin_routes_require_admin_context(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            require_admin(SessionContext())
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertTrue(require_admin(SessionContext(is_admin=True)).is_admin)


if __name__ == "__main__":
    unittest.main()
