"""Seed a demo counseling room with two participants and a short exchange.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Make `counsel_relay` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from counsel_relay.client.gateway import LocalMessageGateway
from counsel_relay.client.viewer import ViewerSession
from counsel_relay.db.session import SessionLocal
from counsel_relay.services.rooms import create_room, join_room


DEFAULT_ADMIN_LABEL = "데모 상담"


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo counseling room.")
    parser.add_argument(
        "--admin-label",
        default=DEFAULT_ADMIN_LABEL,
        help=f"Label of the seeded room (default: {DEFAULT_ADMIN_LABEL})",
    )
    return parser.parse_args()


def main() -> None:
    """Create a room, join both roles, exchange two messages and print a summary."""

    args = parse_args()

    with SessionLocal() as db:
        room = create_room(db, args.admin_label)
        room_id, room_code = room.id, room.code
        counselor = join_room(db, code=room_code, role="counselor", display_name="김상담")
        client = join_room(db, code=room_code, role="client", display_name="이내담")

    gateway = LocalMessageGateway(SessionLocal)
    counselor_view = ViewerSession(
        room_id,
        gateway=gateway,
        sender_role="counselor",
        sender_name="김상담",
        session_id=counselor.session_id,
    )
    client_view = ViewerSession(
        room_id,
        gateway=gateway,
        sender_role="client",
        sender_name="이내담",
        session_id=client.session_id,
    )
    counselor_view.send("안녕하세요, 오늘 어떤 이야기를 나눠볼까요?")
    client_view.send("안녕하세요")
    timeline = client_view.load_history()

    print("Seed complete")
    print(f"room_id={room_id}")
    print(f"room_code={room_code}")
    print(f"counselor_session_id={counselor.session_id}")
    print(f"client_session_id={client.session_id}")
    print(f"messages={len(timeline)}")
    print()
    print("Inspect:")
    print(f"  GET /rooms/{room_id}/info")
    print(f"  GET /rooms/{room_id}/messages")


if __name__ == "__main__":
    main()
