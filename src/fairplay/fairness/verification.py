"""Public verification surface.

Given a revealed secret, the block record and the recorded draws, anyone can
recompute every seed and random output with the functions below.
"""

from __future__ import annotations

from typing import Any, Sequence

from fairplay.contracts import BlockRecord, DrawKind, Ok, RandomDraw, Result
from fairplay.core import CommitmentMismatch, FairnessError, SeedMismatch, StructuralError
from fairplay.fairness.cards import shoe, standard_deck
from fairplay.fairness.expander import (
    derive_seed,
    grid_spawn,
    independent_dice,
    permute,
    rejection_pair,
    sha256_hex,
    spawn_value,
)


def verify_commitment(secret: str, secret_hash: str) -> bool:
    return sha256_hex(secret) == secret_hash.lower()


def check_commitment(secret: str | None, secret_hash: str | None) -> None:
    if not secret or not secret_hash:
        raise StructuralError("revealed secret and commitment hash are both required")
    if not verify_commitment(secret, secret_hash):
        raise CommitmentMismatch("revealed secret does not hash to the commitment")


def default_deck_for(size: int) -> list[str]:
    for deck in (standard_deck(), shoe()):
        if len(deck) == size:
            return deck
    raise StructuralError(f"no known deck of {size} cards")


def recompute_output(
    seed: str,
    kind: DrawKind,
    *,
    count: int | None = None,
    deck: Sequence[Any] | None = None,
    empty_cells: Sequence[tuple[int, int]] | None = None,
) -> tuple[Any, ...]:
    if kind is DrawKind.DICE:
        if count is None:
            raise StructuralError("dice draws need a die count")
        return tuple(independent_dice(seed, count))
    if kind is DrawKind.PAIR:
        return rejection_pair(seed)
    if kind is DrawKind.PERMUTATION:
        if deck is None:
            raise StructuralError("permutation draws need the unshuffled deck")
        return tuple(permute(deck, seed))
    if kind is DrawKind.SPAWN:
        if not empty_cells:
            raise StructuralError("spawn draws need the empty cells of the grid")
        return grid_spawn(seed, empty_cells)
    raise StructuralError(f"unknown draw kind {kind}")


def draw_block(block: BlockRecord | None, draw: RandomDraw) -> BlockRecord:
    if draw.block is None:
        if block is None:
            raise StructuralError(f"draw {draw.purpose_label!r} has no block to derive from")
        return block
    if block is not None and draw.block.height < block.height:
        raise StructuralError(
            f"draw {draw.purpose_label!r} uses block {draw.block.height}, older than session block {block.height}"
        )
    return draw.block


def check_draw(
    secret: str,
    block: BlockRecord | None,
    draw: RandomDraw,
    *,
    deck: Sequence[Any] | None = None,
    empty_cells: Sequence[tuple[int, int]] | None = None,
) -> str:
    """Raises ``SeedMismatch`` unless the recorded draw is exactly reproducible.

    A draw that names its own block is seeded from that block, which may not
    predate ``block``. Spawn draws checked without ``empty_cells`` only have
    their tile value verified, since the position depends on the grid.
    """
    source = draw_block(block, draw)
    seed = derive_seed(secret, source.hash, source.timestamp_millis, draw.purpose_label)
    if draw.seed is not None and draw.seed != seed:
        raise SeedMismatch(f"draw {draw.purpose_label!r}: recorded seed does not match recomputed seed")

    if draw.kind is DrawKind.SPAWN and not empty_cells:
        if len(draw.output) != 3 or draw.output[2] != spawn_value(seed):
            raise SeedMismatch(f"draw {draw.purpose_label!r}: spawn value does not match seed")
        return seed

    if draw.kind is DrawKind.PERMUTATION and deck is None:
        deck = default_deck_for(len(draw.output))
    expected = recompute_output(seed, draw.kind, count=len(draw.output), deck=deck, empty_cells=empty_cells)
    if tuple(draw.output) != expected:
        raise SeedMismatch(f"draw {draw.purpose_label!r}: recorded {draw.kind.value} output does not match seed")
    return seed


def verify_draw(secret: str, block: BlockRecord, draw: RandomDraw, **context: Any) -> Result:
    try:
        return Ok(check_draw(secret, block, draw, **context))
    except FairnessError as exc:
        return exc.to_err()


def verify_history(
    secret: str,
    secret_hash: str,
    block: BlockRecord,
    draws: Sequence[RandomDraw],
) -> Result:
    """Checks the commitment, label uniqueness and every draw in order."""
    try:
        check_commitment(secret, secret_hash)
        seen: set[str] = set()
        seeds: list[str] = []
        for draw in draws:
            if draw.purpose_label in seen:
                raise StructuralError(f"purpose label {draw.purpose_label!r} appears more than once")
            seen.add(draw.purpose_label)
            seeds.append(check_draw(secret, block, draw))
        return Ok(seeds)
    except FairnessError as exc:
        return exc.to_err()
