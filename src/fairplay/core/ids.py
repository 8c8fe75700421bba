from __future__ import annotations

import secrets
from datetime import UTC, datetime
from uuid import uuid4


def now_utc() -> datetime:
    return datetime.now(UTC)


def now_millis() -> int:
    return int(now_utc().timestamp() * 1000)


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def make_game_id(prefix: str, block_height: int, suffix_len: int = 9) -> str:
    """Game ids embed the block height the game was seeded from, e.g. ``BGM-1234-a1b2c3d4e``."""
    return f"{prefix}-{block_height}-{secrets.token_hex(suffix_len)[:suffix_len]}"


class IdSequence:
    """Monotonic id source owned by one game or session.

    Replays that start from the same ``start`` produce the same ids, so no
    process-wide counter leaks between games.
    """

    __slots__ = ("_next",)

    def __init__(self, start: int = 1) -> None:
        self._next = start

    def next(self) -> int:
        value = self._next
        self._next += 1
        return value

    @property
    def peek(self) -> int:
        return self._next
