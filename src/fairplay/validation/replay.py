"""Generic replay validation.

Every game plugs a ``GameReplayer`` into ``ReplayValidator``. The validator
owns the parts all games share: shape checks before any replay work, the
commitment check, strictly ordered draw consumption, and the final score
comparison. Adapters raise the taxonomy errors; this module turns them into
``Ok``/``Err`` at the boundary.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, Sequence

from fairplay.contracts import (
    BlockRecord,
    DrawKind,
    Err,
    ErrorKind,
    GameType,
    Ok,
    RandomDraw,
    Result,
    ScoreReport,
    Submission,
    ValidationError,
    ValidationIssue,
)
from fairplay.core import FairnessError, IllegalAction, StructuralError
from fairplay.fairness.verification import check_commitment, check_draw
from fairplay.validation.structural import ShapeCheck, common_issues

logger = logging.getLogger(__name__)


class DrawCursor:
    """Hands out recorded draws strictly in order, checking each against its seed."""

    def __init__(self, secret: str | None, block: BlockRecord | None, draws: Sequence[RandomDraw]) -> None:
        self.secret = secret
        self.block = block
        self.draws = list(draws)
        self.position = 0

    @property
    def remaining(self) -> int:
        return len(self.draws) - self.position

    def peek_label(self) -> str | None:
        return self.draws[self.position].purpose_label if self.remaining else None

    def take(
        self,
        label: str,
        kind: DrawKind,
        *,
        deck: Sequence[Any] | None = None,
        empty_cells: Sequence[tuple[int, int]] | None = None,
    ) -> RandomDraw:
        if not self.remaining:
            raise StructuralError(f"random history ends before draw {label!r}")
        draw = self.draws[self.position]
        if draw.purpose_label != label:
            raise StructuralError(f"draw {self.position} is labelled {draw.purpose_label!r}, expected {label!r}")
        if draw.kind is not kind:
            raise StructuralError(f"draw {label!r} is a {draw.kind.value} draw, expected {kind.value}")
        if self.secret is None:
            raise StructuralError("draws cannot be checked without the revealed secret")
        check_draw(self.secret, self.block, draw, deck=deck, empty_cells=empty_cells)
        self.position += 1
        return draw

    def finish(self) -> None:
        if self.remaining:
            raise StructuralError(f"{self.remaining} recorded draws were never consumed, next is {self.peek_label()!r}")


class GameReplayer(Protocol):
    game_type: GameType
    needs_secret: bool

    def check_shape(self, submission: Submission) -> list[ValidationIssue]: ...

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport: ...

    def score_matches(self, claimed: float, calculated: float) -> bool: ...


class ExactScore:
    """Mixin for adapters whose score must match to the unit."""

    def score_matches(self, claimed: float, calculated: float) -> bool:
        return claimed == calculated


class ReplayValidator:
    def __init__(self, replayers: Sequence[GameReplayer]) -> None:
        self._replayers = {r.game_type: r for r in replayers}

    def replayer_for(self, game_type: GameType) -> GameReplayer:
        try:
            return self._replayers[game_type]
        except KeyError as exc:
            raise StructuralError(f"no replay rules for game type {game_type}") from exc

    def check_shape(self, submission: Submission) -> GameReplayer:
        replayer = self.replayer_for(submission.game_type)
        shape = ShapeCheck()
        shape.extend(common_issues(submission, needs_secret=replayer.needs_secret))
        shape.extend(replayer.check_shape(submission))
        shape.finalize()
        return replayer

    def _run(self, submission: Submission) -> ScoreReport:
        replayer = self.check_shape(submission)
        if replayer.needs_secret or submission.secret:
            check_commitment(submission.secret, submission.secret_hash)
        draws = DrawCursor(submission.secret, submission.block, submission.random_history)
        report = replayer.replay(submission, draws)
        draws.finish()
        claimed = submission.claimed_score
        if not replayer.score_matches(claimed, report.calculated_score):
            raise IllegalAction(f"score mismatch: claimed {claimed}, calculated {report.calculated_score}")
        return report

    def validate(self, submission: Submission) -> Result:
        try:
            report = self._run(submission)
        except ValidationError as exc:
            logger.info("rejected game_id=%s kind=%s", submission.game_id, ErrorKind.STRUCTURAL_ERROR.value)
            return Err(ErrorKind.STRUCTURAL_ERROR, str(exc))
        except FairnessError as exc:
            logger.info("rejected game_id=%s kind=%s detail=%s", submission.game_id, exc.kind.value, exc.detail)
            return exc.to_err()
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            # malformed nested payloads fail closed
            logger.info("rejected game_id=%s malformed payload: %r", submission.game_id, exc)
            return Err(ErrorKind.STRUCTURAL_ERROR, f"malformed submission: {exc!r}")
        return Ok(report)


def summarize(result: Result) -> dict[str, Any]:
    if isinstance(result, Ok):
        return {"valid": True, "reason": None, "kind": None, "calculated_score": result.value.calculated_score}
    return {"valid": False, "reason": result.detail, "kind": result.kind.value, "calculated_score": None}


def metadata_number(metadata: Mapping[str, Any], key: str) -> float | None:
    value = metadata.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StructuralError(f"metadata.{key} must be a number")
    return value
