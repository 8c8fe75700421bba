"""Heuristic fraud scoring layered on top of a valid replay.

A replay proves the game was legal; these signals look at how plausible it
is that a human played it, and how this player's recent history looks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from fairplay.contracts import FraudAssessment, GameType, Recommendation, Submission

SUSPICIOUS_CONFIDENCE = 50
FLAG_THRESHOLD = 25
SCORE_WEIGHT = 0.5
PATTERN_WEIGHT = 0.3
MISSING_BLOCK_RISK = 20


@dataclass(frozen=True, slots=True)
class GameThreshold:
    max_score: float | None = None
    min_seconds_per_unit: float | None = None
    unit_penalty: int = 25
    suspicious_above: float | None = None
    suspicious_penalty: int = 0


THRESHOLDS = {
    GameType.SOLITAIRE: GameThreshold(max_score=52, min_seconds_per_unit=0.5, unit_penalty=30),
    GameType.GARBAGE: GameThreshold(max_score=10000),
    GameType.YAHTZEE: GameThreshold(max_score=375, min_seconds_per_unit=3),
    GameType.BLACKJACK: GameThreshold(min_seconds_per_unit=2, suspicious_above=100000, suspicious_penalty=35),
    GameType.GAME_2048: GameThreshold(min_seconds_per_unit=0.3, unit_penalty=20, suspicious_above=100000, suspicious_penalty=30),
    GameType.BACKGAMMON: GameThreshold(max_score=576, min_seconds_per_unit=1),
}
YAHTZEE_TURNS = 13
YAHTZEE_PERFECT = 375
YAHTZEE_PERFECT_SECONDS = 60
NEAR_PERFECT = {GameType.SOLITAIRE: 52, GameType.YAHTZEE: 350, GameType.BACKGAMMON: 500}


@dataclass(frozen=True, slots=True)
class PastGame:
    game_type: GameType
    score: float
    created_at: datetime


@dataclass(slots=True)
class Signals:
    flags: list[str]
    confidence: int

    @property
    def suspicious(self) -> bool:
        return self.confidence >= SUSPICIOUS_CONFIDENCE


def _units(submission: Submission) -> int:
    """Moves for tile and card games, hands for blackjack, turns for Yahtzee."""
    moves = submission.metadata.get("moves")
    if isinstance(moves, int) and not isinstance(moves, bool):
        return moves
    if submission.game_type is GameType.YAHTZEE:
        return YAHTZEE_TURNS
    if submission.game_type is GameType.BACKGAMMON:
        return sum(len(a.get("moves", [])) for a in submission.action_history if isinstance(a, dict))
    return len(submission.action_history)


def score_signals(submission: Submission) -> Signals:
    threshold = THRESHOLDS.get(submission.game_type)
    if threshold is None:
        return Signals([], 0)
    score = submission.claimed_score or 0
    time_seconds = submission.metadata.get("time_seconds")
    units = _units(submission)
    flags: list[str] = []
    confidence = 0

    if threshold.max_score is not None and score > threshold.max_score:
        flags.append(f"score {score} exceeds maximum {threshold.max_score}")
        confidence += 50

    if isinstance(time_seconds, (int, float)) and time_seconds > 0 and threshold.min_seconds_per_unit:
        if submission.game_type is GameType.SOLITAIRE:
            units = int(score)
        minimum = units * threshold.min_seconds_per_unit
        if units > 0 and time_seconds < minimum:
            flags.append(f"{units} units in {time_seconds}s (minimum {minimum:g}s)")
            confidence += threshold.unit_penalty
        if (
            submission.game_type is GameType.YAHTZEE
            and score == YAHTZEE_PERFECT
            and time_seconds < YAHTZEE_PERFECT_SECONDS
        ):
            flags.append(f"perfect score in {time_seconds}s")
            confidence += 40

    if threshold.suspicious_above is not None and score > threshold.suspicious_above:
        flags.append(f"score {score} is unusually high for {submission.game_type.value}")
        confidence += threshold.suspicious_penalty
    return Signals(flags, confidence)


def pattern_signals(history: Sequence[PastGame]) -> Signals:
    if not history:
        return Signals([], 0)
    flags: list[str] = []
    confidence = 0

    perfect = sum(1 for g in history if g.game_type in NEAR_PERFECT and g.score >= NEAR_PERFECT[g.game_type])
    if perfect / len(history) > 0.5:
        flags.append(f"{perfect}/{len(history)} recent games are near-perfect")
        confidence += 30

    scores = [g.score for g in history]
    mean = sum(scores) / len(scores)
    std_dev = math.sqrt(sum((s - mean) ** 2 for s in scores) / len(scores))
    if len(history) >= 5 and std_dev < mean * 0.05:
        flags.append(f"scores are unusually consistent (std dev {std_dev:.2f})")
        confidence += 25

    if len(history) >= 3:
        stamps = sorted(g.created_at.timestamp() for g in history)
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        average_gap = sum(gaps) / len(gaps)
        if average_gap < 30:
            flags.append(f"submissions averaged {average_gap:.1f}s apart")
            confidence += 35
    return Signals(flags, confidence)


class FraudAnalyzer:
    def __init__(self, review_threshold: int = 50, reject_threshold: int = 75) -> None:
        if not FLAG_THRESHOLD <= review_threshold <= reject_threshold <= 100:
            raise ValueError("thresholds must satisfy 25 <= review <= reject <= 100")
        self.review_threshold = review_threshold
        self.reject_threshold = reject_threshold

    def recommend(self, risk: int) -> Recommendation:
        if risk >= self.reject_threshold:
            return Recommendation.REJECT
        if risk >= self.review_threshold:
            return Recommendation.MANUAL_REVIEW
        if risk >= FLAG_THRESHOLD:
            return Recommendation.ACCEPT_WITH_FLAG
        return Recommendation.ACCEPT

    def assess(self, submission: Submission, history: Sequence[PastGame] = ()) -> FraudAssessment:
        flags: list[str] = []
        risk = 0.0
        score = score_signals(submission)
        if score.suspicious:
            flags.extend(score.flags)
            risk += score.confidence * SCORE_WEIGHT
        pattern = pattern_signals(history)
        if pattern.suspicious:
            flags.extend(pattern.flags)
            risk += pattern.confidence * PATTERN_WEIGHT
        if submission.block is None or not submission.block.hash:
            flags.append("missing block data")
            risk += MISSING_BLOCK_RISK
        risk_score = round(min(100.0, max(0.0, risk)))
        return FraudAssessment(risk_score=risk_score, flags=flags, recommendation=self.recommend(risk_score))
