"""Stateless expansion of published seeds into random outputs.

Every function here is a pure function of its arguments. Anyone holding the
revealed secret, the block record and the purpose label can rerun them and
must get byte-identical results.
"""

from __future__ import annotations

import hashlib
import math
from typing import Sequence, TypeVar

T = TypeVar("T")

LCG_A = 1103515245
LCG_C = 12345
LCG_M = 2**31

DIE_FACES = 6
# 252 = 42 * 6, the largest multiple of six below 256
REJECTION_LIMIT = 252
SPAWN_FOUR_PERCENT = 10


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _uint32(hex_digest: str) -> int:
    return int(hex_digest[:8], 16)


def derive_seed(secret: str, block_hash: str, timestamp_millis: int, purpose_label: str) -> str:
    return sha256_hex(f"{secret}{block_hash}{int(timestamp_millis)}{purpose_label}")


class LcgStream:
    """Linear congruential stream seeded from the first 32 bits of a hex seed.

    State is an IEEE double: ``a * state`` exceeds 2**53 and is rounded before
    the modulo, matching the published browser clients.
    """

    __slots__ = ("state",)

    def __init__(self, seed: str) -> None:
        self.state = float(_uint32(seed))

    def next_float(self) -> float:
        self.state = (LCG_A * self.state + LCG_C) % LCG_M
        return self.state / LCG_M

    def next_index(self, bound: int) -> int:
        return math.floor(self.next_float() * bound)


def permute(items: Sequence[T], seed: str) -> list[T]:
    deck = list(items)
    stream = LcgStream(seed)
    for i in range(len(deck) - 1, 0, -1):
        j = stream.next_index(i + 1)
        deck[i], deck[j] = deck[j], deck[i]
    return deck


def independent_die(seed: str, index: int) -> int:
    return _uint32(sha256_hex(f"{seed}{index}")) % DIE_FACES + 1


def independent_dice(seed: str, count: int) -> list[int]:
    if count < 0:
        raise ValueError("dice count must be non-negative")
    return [independent_die(seed, i) for i in range(count)]


def _accepted_bytes(hex_text: str) -> list[int]:
    values: list[int] = []
    for offset in range(0, len(hex_text) - 1, 2):
        b = int(hex_text[offset : offset + 2], 16)
        if b < REJECTION_LIMIT:
            values.append(b % DIE_FACES + 1)
    return values


def rejection_pair(seed: str) -> tuple[int, int]:
    dice = _accepted_bytes(seed)[:2]
    attempt = 0
    while len(dice) < 2:
        dice.extend(_accepted_bytes(sha256_hex(f"{seed}{attempt}"))[: 2 - len(dice)])
        attempt += 1
    return dice[0], dice[1]


def expand_dice(pair: Sequence[int]) -> list[int]:
    """Doubles play four times."""
    if len(pair) == 2 and pair[0] == pair[1]:
        return [pair[0]] * 4
    return list(pair)


def spawn_index(seed: str, empty_count: int) -> int:
    if empty_count <= 0:
        raise ValueError("no empty cells to spawn into")
    return _uint32(sha256_hex(f"{seed}position")) % empty_count


def spawn_value(seed: str) -> int:
    return 2 if _uint32(sha256_hex(f"{seed}value")) % 100 < 100 - SPAWN_FOUR_PERCENT else 4


def grid_spawn(seed: str, empty_cells: Sequence[tuple[int, int]]) -> tuple[int, int, int]:
    """Returns ``(row, col, value)``; ``empty_cells`` must be in row-major order."""
    row, col = empty_cells[spawn_index(seed, len(empty_cells))]
    return row, col, spawn_value(seed)
