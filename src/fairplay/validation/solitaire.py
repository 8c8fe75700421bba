from __future__ import annotations

from fairplay.contracts import DrawKind, GameType, ScoreReport, Submission, ValidationIssue
from fairplay.core import IllegalAction
from fairplay.fairness.cards import standard_deck
from fairplay.games.solitaire import (
    ACTIONS,
    DECK_LABEL,
    MAX_SCORE,
    MIN_SECONDS_PER_MOVE,
    PERFECT_MAX_MOVES,
    PERFECT_MIN_MOVES,
    PERFECT_MIN_SECONDS,
    KlondikeTable,
)
from fairplay.validation.replay import DrawCursor, ExactScore, metadata_number
from fairplay.validation.structural import ShapeCheck


def check_pace(score: int, moves: int, time_seconds: float | None) -> None:
    """Human-speed sanity limits on an otherwise legal game."""
    if moves < score:
        raise IllegalAction(f"{score} foundation cards with only {moves} moves")
    if score == MAX_SCORE:
        if not PERFECT_MIN_MOVES <= moves <= PERFECT_MAX_MOVES:
            raise IllegalAction(f"perfect game in {moves} moves (expected {PERFECT_MIN_MOVES}-{PERFECT_MAX_MOVES})")
        if time_seconds is not None and time_seconds < PERFECT_MIN_SECONDS:
            raise IllegalAction(f"perfect game in {time_seconds}s (minimum {PERFECT_MIN_SECONDS}s)")
    if time_seconds is not None and moves and time_seconds / moves < MIN_SECONDS_PER_MOVE:
        raise IllegalAction(f"{time_seconds / moves:.2f}s per move is faster than {MIN_SECONDS_PER_MOVE}s")


class SolitaireReplayer(ExactScore):
    game_type = GameType.SOLITAIRE
    needs_secret = True

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        score = submission.claimed_score
        if isinstance(score, (int, float)):
            shape.require(score <= MAX_SCORE, "SCORE_OUT_OF_RANGE", "claimed_score", f"score must be 0-{MAX_SCORE}")
        for index, action in enumerate(submission.action_history):
            kind = action.get("type") if isinstance(action, dict) else None
            shape.require(kind in ACTIONS, "INVALID_ACTION", f"action_history[{index}].type", f"unknown action {kind!r}")
        return shape.issues

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        draw = draws.take(DECK_LABEL, DrawKind.PERMUTATION, deck=standard_deck())
        table = KlondikeTable(draw.output)
        for index, action in enumerate(submission.action_history):
            try:
                table.apply(action)
            except IllegalAction as exc:
                raise IllegalAction(f"move {index}: {exc.detail}") from exc

        claimed = (submission.claimed_final_state or {}).get("foundations")
        if claimed is not None and dict(claimed) != {s: len(p) for s, p in table.foundations.items()}:
            raise IllegalAction("claimed foundations do not match the replayed table")
        time_seconds = metadata_number(submission.metadata, "time_seconds")
        check_pace(table.score, table.moves, time_seconds)
        return ScoreReport(
            calculated_score=table.score,
            details={"moves": table.moves, "won": table.won, "time_seconds": time_seconds},
        )
