"""End-to-end tests for viewer sessions over an in-process gateway."""

from __future__ import annotations

import asyncio
import contextlib
import unittest

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from counsel_relay.client.gateway import LocalMessageGateway, SubmitOutcome
from counsel_relay.client.viewer import PushReceived, ViewerSession
from counsel_relay.core.exceptions import RoomClosedError, StoreError, ValidationError
from counsel_relay.models.base import Base
from counsel_relay.models.message import Message
from counsel_relay.models.participant import Participant
from counsel_relay.models.room import Room
from counsel_relay.services.fanout import FanoutHub
from counsel_relay.services.rooms import close_room, create_room, join_room


class _FlakyGateway:
    """Fails the first ``failures`` submits, then delegates."""

    def __init__(self, inner: LocalMessageGateway, failures: int) -> None:
        self.inner = inner
        self.failures = failures
        self.submitted_keys: list[str] = []

    def list_messages(self, room_id: str):
        return self.inner.list_messages(room_id)

    def get_room_info(self, room_id: str):
        return self.inner.get_room_info(room_id)

    def submit_message(self, room_id: str, **fields) -> SubmitOutcome:
        self.submitted_keys.append(fields["client_message_id"])
        if self.failures > 0:
            self.failures -= 1
            raise StoreError("HTTP 500: database unavailable")
        return self.inner.submit_message(room_id, **fields)


class _TimeoutGateway(_FlakyGateway):
    """Raises a transport-level timeout instead of a relay error."""

    def submit_message(self, room_id: str, **fields) -> SubmitOutcome:
        self.submitted_keys.append(fields["client_message_id"])
        if self.failures > 0:
            self.failures -= 1
            raise TimeoutError("read timed out")
        return self.inner.submit_message(room_id, **fields)


class ViewerSessionTests(unittest.TestCase):
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

        self.hub = FanoutHub()
        room = create_room(self.db, "상담")
        self.room_id = room.id
        self.room_code = room.code
        self.counselor = join_room(self.db, code=self.room_code, role="counselor", display_name="김상담")
        self.client = join_room(self.db, code=self.room_code, role="client", display_name="이내담")
        self.gateway = LocalMessageGateway(self.SessionLocal, publisher=self.hub)

    def tearDown(self) -> None:
        self.db.close()

    def _viewer(self, role: str, name: str, session_id: str, gateway=None) -> ViewerSession:
        return ViewerSession(
            self.room_id,
            gateway=gateway or self.gateway,
            sender_role=role,
            sender_name=name,
            session_id=session_id,
        )

    def test_sender_and_peer_converge_on_committed_rows(self) -> None:
        client_view = self._viewer("client", "이내담", self.client.session_id)
        counselor_view = self._viewer("counselor", "김상담", self.counselor.session_id)
        client_view.load_history()
        counselor_view.load_history()

        with self.hub.subscribe(self.room_id) as client_feed, self.hub.subscribe(self.room_id) as counselor_feed:
            pending = client_view.send("안녕하세요")
            self.assertEqual(client_view.pump(client_feed), 1)
            self.assertEqual(counselor_view.pump(counselor_feed), 1)

        self.assertTrue(pending.created)
        self.assertTrue(pending.confirmed)
        for view in (client_view, counselor_view):
            entries = [m for m in view.messages if m.client_message_id == pending.client_message_id]
            self.assertEqual(len(entries), 1)
            self.assertEqual(entries[0].id, pending.committed_id)
            self.assertFalse(entries[0].optimistic)
        self.assertEqual(client_view.timeline.pending(), [])
        self.assertEqual(
            [m.content for m in client_view.messages],
            [m.content for m in counselor_view.messages],
        )

    def test_push_arriving_before_response_still_yields_one_entry(self) -> None:
        viewer = self._viewer("client", "이내담", self.client.session_id)
        optimistic = viewer.timeline.add_optimistic(
            sender_role="client",
            sender_name="이내담",
            content="먼저 도착",
            client_message_id="2b3c4d5e-6f70-4a81-9b2c-3d4e5f607182",
        )
        committed = self.gateway.submit_message(
            self.room_id,
            sender_role="client",
            sender_name="이내담",
            content="먼저 도착",
            client_message_id=optimistic.client_message_id,
            session_id=self.client.session_id,
        ).message

        viewer.handle(PushReceived(committed))
        viewer.handle(PushReceived(committed.model_dump(mode="json", by_alias=True)))

        keyed = [m for m in viewer.messages if m.client_message_id == optimistic.client_message_id]
        self.assertEqual([m.id for m in keyed], [committed.id])

    def test_failed_send_leaves_orphan_until_retry_with_same_key(self) -> None:
        flaky = _FlakyGateway(self.gateway, failures=1)
        viewer = self._viewer("client", "이내담", self.client.session_id, gateway=flaky)

        with self.assertRaises(StoreError):
            viewer.send("전송 실패")

        orphan = viewer.orphaned()
        self.assertEqual(len(orphan), 1)
        self.assertEqual(orphan[0].error, "HTTP 500: database unavailable")
        self.assertEqual([m.content for m in viewer.timeline.pending()], ["전송 실패"])
        self.assertEqual(
            [m.content for m in self.gateway.list_messages(self.room_id) if m.sender_role == "client"],
            [],
        )

        viewer.retry(orphan[0])

        self.assertEqual(flaky.submitted_keys, [orphan[0].client_message_id] * 2)
        self.assertEqual(viewer.orphaned(), [])
        self.assertEqual(viewer.timeline.pending(), [])
        self.assertEqual(orphan[0].attempts, 2)

    def test_transport_error_still_marks_send_failed(self) -> None:
        gateway = _TimeoutGateway(self.gateway, failures=1)
        viewer = self._viewer("client", "이내담", self.client.session_id, gateway=gateway)

        with self.assertRaises(TimeoutError):
            viewer.send("응답 유실")

        orphan = viewer.orphaned()
        self.assertEqual(len(orphan), 1)
        self.assertEqual(orphan[0].error, "read timed out")

        viewer.retry(orphan[0])
        self.assertEqual(gateway.submitted_keys, [orphan[0].client_message_id] * 2)
        self.assertTrue(orphan[0].confirmed)
        self.assertEqual(viewer.timeline.pending(), [])

    def test_reload_drops_orphans_that_were_never_committed(self) -> None:
        flaky = _FlakyGateway(self.gateway, failures=1)
        viewer = self._viewer("client", "이내담", self.client.session_id, gateway=flaky)
        with self.assertRaises(StoreError):
            viewer.send("사라질 메시지")

        reloaded = self._viewer("client", "이내담", self.client.session_id)
        contents = [m.content for m in reloaded.load_history()]
        self.assertNotIn("사라질 메시지", contents)

    def test_retry_of_committed_send_is_a_noop(self) -> None:
        viewer = self._viewer("client", "이내담", self.client.session_id)
        pending = viewer.send("한 번만")
        viewer.retry(pending)
        self.assertEqual(pending.attempts, 1)

    def test_duplicate_submission_of_same_key_returns_original_row(self) -> None:
        first = self.gateway.submit_message(
            self.room_id,
            sender_role="client",
            sender_name="이내담",
            content="안녕하세요",
            client_message_id="8c9d0e1f-2a3b-4c4d-9e5f-6a7b8c9d0e1f",
            session_id=self.client.session_id,
        )
        second = self.gateway.submit_message(
            self.room_id,
            sender_role="client",
            sender_name="이내담",
            content="안녕하세요",
            client_message_id="8c9d0e1f-2a3b-4c4d-9e5f-6a7b8c9d0e1f",
            session_id=self.client.session_id,
        )
        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(first.message.id, second.message.id)

    def test_closed_room_gates_local_sends_after_status_refresh(self) -> None:
        viewer = self._viewer("client", "이내담", self.client.session_id)
        self.assertEqual(viewer.refresh_room_status(), "active")

        close_room(self.db, self.room_id)
        self.assertEqual(viewer.refresh_room_status(), "closed")
        self.assertFalse(viewer.can_send)
        with self.assertRaises(RoomClosedError):
            viewer.send("늦은 메시지")
        self.assertEqual(viewer.sends, [])

    def test_blank_send_is_rejected_locally(self) -> None:
        viewer = self._viewer("client", "이내담", self.client.session_id)
        with self.assertRaises(ValidationError):
            viewer.send("   ")
        self.assertEqual(viewer.messages, [])

    def test_follow_merges_pushes_until_cancelled(self) -> None:
        counselor_view = self._viewer("counselor", "김상담", self.counselor.session_id)
        client_view = self._viewer("client", "이내담", self.client.session_id)

        async def scenario() -> None:
            with self.hub.subscribe(self.room_id) as feed:
                task = asyncio.create_task(counselor_view.follow(feed))
                pending = client_view.send("실시간으로 보이나요?")
                for _ in range(10):
                    await asyncio.sleep(0)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            self.assertEqual([m.id for m in counselor_view.messages], [pending.committed_id])

        asyncio.run(scenario())


if __name__ == "__main__":
    unittest.main()
