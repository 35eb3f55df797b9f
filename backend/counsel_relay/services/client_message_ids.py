"""Client-side idempotency keys for message sends."""

from __future__ import annotations

import os
import random
import re

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def new_client_message_id() -> str:
    """Return a fresh UUID-v4 key, generated once per logical send."""

    return format_uuid_v4(_random_bytes(16))


def format_uuid_v4(raw: bytes) -> str:
    """Stamp RFC 4122 version/variant bits onto 16 bytes and render them."""

    if len(raw) != 16:
        raise ValueError("UUID-v4 keys need exactly 16 bytes")
    data = bytearray(raw)
    data[6] = (data[6] & 0x0F) | 0x40
    data[8] = (data[8] & 0x3F) | 0x80
    hex_value = data.hex()
    return "-".join(
        (hex_value[0:8], hex_value[8:12], hex_value[12:16], hex_value[16:20], hex_value[20:32])
    )


def normalize_client_message_id(value: str | None) -> str:
    """Trim and lower-case a submitted key; missing keys become empty strings."""

    return value.strip().lower() if isinstance(value, str) else ""


def is_client_message_id(value: str | None) -> bool:
    """True when ``value`` has the UUID-v4 layout."""

    return bool(UUID_V4_PATTERN.match(normalize_client_message_id(value)))


def _random_bytes(count: int) -> bytes:
    try:
        return os.urandom(count)
    except NotImplementedError:
        # No OS entropy source: uniqueness becomes statistical only.
        return random.Random().randbytes(count)
