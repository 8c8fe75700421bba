from .types import (
    BAR,
    OFF,
    ActionRequest,
    ActionResult,
    ActionType,
    BlockRecord,
    Commitment,
    Difficulty,
    DrawKind,
    DrawRecord,
    EntropySource,
    Err,
    ErrorKind,
    ForensicArtifact,
    FraudAssessment,
    GameRecord,
    GameType,
    Move,
    Ok,
    Player,
    RandomDraw,
    Recommendation,
    Result,
    Reveal,
    ScoreReport,
    SessionRecord,
    SessionRepository,
    SessionStart,
    Submission,
    ValidationError,
    ValidationIssue,
    ValidationLevel,
    ValidationResult,
)

__all__ = [
    "BAR",
    "OFF",
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "BlockRecord",
    "Commitment",
    "Difficulty",
    "DrawKind",
    "DrawRecord",
    "EntropySource",
    "Err",
    "ErrorKind",
    "ForensicArtifact",
    "FraudAssessment",
    "GameRecord",
    "GameType",
    "Move",
    "Ok",
    "Player",
    "RandomDraw",
    "Recommendation",
    "Result",
    "Reveal",
    "ScoreReport",
    "SessionRecord",
    "SessionRepository",
    "SessionStart",
    "Submission",
    "ValidationError",
    "ValidationIssue",
    "ValidationLevel",
    "ValidationResult",
]
