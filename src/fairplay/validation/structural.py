from __future__ import annotations

from typing import Any, Iterable

from fairplay.contracts import Submission, ValidationError, ValidationIssue, ValidationResult


class ShapeCheck:
    """Collects shape issues; blocking ones stop the submission before replay."""

    def __init__(self, entity_id: str = "") -> None:
        self.entity_id = entity_id
        self.issues: list[ValidationIssue] = []

    def add(self, code: str, field_path: str, message: str, severity: str = "blocking") -> None:
        self.issues.append(
            ValidationIssue(
                code=code,
                severity=severity,
                field_path=field_path,
                entity_id=self.entity_id,
                message=message,
            )
        )

    def require(self, condition: bool, code: str, field_path: str, message: str) -> bool:
        if not condition:
            self.add(code, field_path, message)
        return condition

    def extend(self, issues: Iterable[ValidationIssue]) -> None:
        self.issues.extend(issues)

    def finalize(self) -> ValidationResult:
        ordered = sorted(self.issues, key=lambda x: (x.severity, x.code, x.entity_id, x.field_path))
        blocking = [i for i in ordered if i.severity == "blocking"]
        if blocking:
            raise ValidationError(blocking)
        return ValidationResult(ok=True, issues=ordered)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def common_issues(submission: Submission, *, needs_secret: bool) -> list[ValidationIssue]:
    shape = ShapeCheck(submission.game_id)
    shape.require(bool(submission.game_id), "MISSING_GAME_ID", "game_id", "game id is required")
    shape.require(isinstance(submission.action_history, list), "INVALID_ACTION_HISTORY", "action_history", "must be a list")
    score = submission.claimed_score
    if shape.require(is_number(score), "MISSING_SCORE", "claimed_score", "claimed score must be a number"):
        shape.require(score >= 0, "NEGATIVE_SCORE", "claimed_score", f"score cannot be negative: {score}")
    if needs_secret:
        shape.require(bool(submission.secret), "MISSING_SECRET", "secret", "revealed secret is required")
        shape.require(bool(submission.secret_hash), "MISSING_COMMITMENT", "secret_hash", "commitment hash is required")
    if submission.random_history or needs_secret:
        shape.require(submission.block is not None, "MISSING_BLOCK", "block", "block record is required")

    seen: set[str] = set()
    for index, draw in enumerate(submission.random_history):
        if draw.purpose_label in seen:
            shape.add("DUPLICATE_PURPOSE_LABEL", f"random_history[{index}]", f"label {draw.purpose_label!r} reused")
        seen.add(draw.purpose_label)
    return shape.issues
