from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from fairplay.contracts import (
    Err,
    ErrorKind,
    FraudAssessment,
    GameType,
    Ok,
    Recommendation,
    Result,
    ScoreReport,
    Submission,
    ValidationError,
    ValidationLevel,
)
from fairplay.core import FairnessError, StructuralError
from fairplay.validation.backgammon import BackgammonReplayer
from fairplay.validation.blackjack import BlackjackReplayer
from fairplay.validation.chess import DEFAULT_TOLERANCE, ChessReplayer
from fairplay.validation.fraud import FraudAnalyzer, PastGame
from fairplay.validation.garbage import GarbageReplayer
from fairplay.validation.grid2048 import Grid2048Replayer
from fairplay.validation.replay import ReplayValidator
from fairplay.validation.solitaire import SolitaireReplayer
from fairplay.validation.yahtzee import YahtzeeReplayer

logger = logging.getLogger(__name__)

GAME_ID_PATTERNS = {
    GameType.SOLITAIRE: re.compile(r"SOL-\d+-\w+"),
    GameType.GARBAGE: re.compile(r"GRB-\d+-\w+"),
    GameType.YAHTZEE: re.compile(r"YAH-\d+-\w+"),
    GameType.BLACKJACK: re.compile(r"BJK-\d+-\w+"),
    GameType.CHESS: re.compile(r"CHS-\d+-\w+"),
    GameType.GAME_2048: re.compile(r"2048-\w{8}-\d+-\w{4}"),
    GameType.BACKGAMMON: re.compile(r"BGM-\d+-\w{9}"),
}


@dataclass(slots=True)
class SubmissionVerdict:
    level: ValidationLevel
    report: ScoreReport | None = None
    assessment: FraudAssessment | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def calculated_score(self) -> int | float | None:
        return self.report.calculated_score if self.report else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "calculated_score": self.calculated_score,
            "details": self.report.details if self.report else {},
            "risk_score": self.assessment.risk_score if self.assessment else None,
            "flags": list(self.assessment.flags) if self.assessment else [],
            "recommendation": self.assessment.recommendation.value if self.assessment else None,
        }


def default_validator(chess_tolerance: float = DEFAULT_TOLERANCE) -> ReplayValidator:
    return ReplayValidator(
        [
            BackgammonReplayer(),
            BlackjackReplayer(),
            YahtzeeReplayer(),
            Grid2048Replayer(),
            GarbageReplayer(),
            SolitaireReplayer(),
            ChessReplayer(tolerance=chess_tolerance),
        ]
    )


def check_game_id(submission: Submission) -> None:
    pattern = GAME_ID_PATTERNS.get(submission.game_type)
    if pattern is None:
        raise StructuralError(f"unsupported game type {submission.game_type}")
    if not pattern.fullmatch(submission.game_id or ""):
        raise StructuralError(f"game id {submission.game_id!r} does not match the {submission.game_type.value} format")


class SubmissionValidator:
    """Runs the level-appropriate checks for one submission."""

    def __init__(self, replay: ReplayValidator | None = None, analyzer: FraudAnalyzer | None = None) -> None:
        self.replay = replay or default_validator()
        self.analyzer = analyzer or FraudAnalyzer()

    def validate(
        self,
        submission: Submission,
        level: ValidationLevel = ValidationLevel.FULL,
        history: Sequence[PastGame] = (),
    ) -> Result:
        result, _ = self.validate_with_assessment(submission, level, history)
        return result

    def validate_with_assessment(
        self,
        submission: Submission,
        level: ValidationLevel = ValidationLevel.FULL,
        history: Sequence[PastGame] = (),
    ) -> tuple[Result, FraudAssessment | None]:
        """Like ``validate`` but also hands back the fraud assessment, which a REJECT would otherwise hide."""
        try:
            check_game_id(submission)
            if level is ValidationLevel.BASIC:
                self.replay.check_shape(submission)
                return Ok(SubmissionVerdict(level=level)), None
        except ValidationError as exc:
            return Err(ErrorKind.STRUCTURAL_ERROR, str(exc)), None
        except FairnessError as exc:
            return exc.to_err(), None

        result = self.replay.validate(submission)
        if isinstance(result, Err):
            return result, None
        verdict = SubmissionVerdict(level=level, report=result.value)
        if level is ValidationLevel.FULL:
            verdict.assessment = self.analyzer.assess(submission, history)
            if verdict.assessment.recommendation is Recommendation.REJECT:
                logger.info("fraud reject game_id=%s risk=%s", submission.game_id, verdict.assessment.risk_score)
                flags = "; ".join(verdict.assessment.flags)
                detail = f"rejected by fraud analysis (risk {verdict.assessment.risk_score}): {flags}"
                return Err(ErrorKind.STRUCTURAL_ERROR, detail), verdict.assessment
        return Ok(verdict), verdict.assessment


def validate_submission(
    submission: Submission,
    level: ValidationLevel = ValidationLevel.FULL,
    history: Sequence[PastGame] = (),
) -> Result:
    return SubmissionValidator().validate(submission, level, history)
