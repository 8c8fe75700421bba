from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Mapping, Protocol, Sequence, TypeVar

T = TypeVar("T")

BAR = "bar"
OFF = "off"


class GameType(str, Enum):
    BACKGAMMON = "backgammon"
    BLACKJACK = "blackjack"
    YAHTZEE = "yahtzee"
    GAME_2048 = "2048"
    GARBAGE = "garbage"
    SOLITAIRE = "solitaire"
    CHESS = "chess"


class ErrorKind(str, Enum):
    ENTROPY_SOURCE_UNAVAILABLE = "EntropySourceUnavailable"
    COMMITMENT_MISMATCH = "CommitmentMismatch"
    ILLEGAL_ACTION = "IllegalAction"
    SEED_MISMATCH = "SeedMismatch"
    STRUCTURAL_ERROR = "StructuralError"


class DrawKind(str, Enum):
    DICE = "dice"
    PAIR = "pair"
    PERMUTATION = "permutation"
    SPAWN = "spawn"


class Player(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> Player:
        return Player.BLACK if self is Player.WHITE else Player.WHITE


class Difficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


class ValidationLevel(str, Enum):
    BASIC = "basic"
    LOGIC = "logic"
    FULL = "full"


class Recommendation(str, Enum):
    ACCEPT = "ACCEPT"
    ACCEPT_WITH_FLAG = "ACCEPT_WITH_FLAG"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    REJECT = "REJECT"


class ActionType(str, Enum):
    START_SESSION = "start_session"
    DERIVE_SEED = "derive_seed"
    END_SESSION = "end_session"
    VERIFY_DRAW = "verify_draw"
    SUBMIT_SCORE = "submit_score"
    GET_VALIDATION_STATS = "get_validation_stats"
    GET_FLAGGED_SUBMISSIONS = "get_flagged_submissions"
    EXPORT_AUDIT = "export_audit"


@dataclass(frozen=True, slots=True)
class BlockRecord:
    hash: str
    height: int
    timestamp_millis: int
    tx_hash: str | None = None
    tx_index: int | None = None
    tx_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "height": self.height,
            "timestamp_millis": self.timestamp_millis,
            "tx_hash": self.tx_hash,
            "tx_index": self.tx_index,
            "tx_count": self.tx_count,
        }

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> BlockRecord:
        return BlockRecord(
            hash=str(raw["hash"]),
            height=int(raw["height"]),
            timestamp_millis=int(raw["timestamp_millis"]),
            tx_hash=raw.get("tx_hash"),
            tx_index=raw.get("tx_index"),
            tx_count=raw.get("tx_count"),
        )


@dataclass(frozen=True, slots=True)
class Commitment:
    session_id: str
    secret_hash: str


@dataclass(frozen=True, slots=True)
class SessionStart:
    session_id: str
    secret_hash: str
    block: BlockRecord


@dataclass(frozen=True, slots=True)
class DrawRecord:
    purpose_label: str
    block: BlockRecord
    seed: str


@dataclass(slots=True)
class SessionRecord:
    session_id: str
    secret_hash: str
    secret: str
    block: BlockRecord
    purpose_log: list[DrawRecord] = field(default_factory=list)
    created_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def ended(self) -> bool:
        return self.ended_at is not None

    def used_labels(self) -> set[str]:
        return {d.purpose_label for d in self.purpose_log}


@dataclass(frozen=True, slots=True)
class Reveal:
    session_id: str
    secret: str
    secret_hash: str
    block: BlockRecord
    purpose_log: tuple[DrawRecord, ...]


@dataclass(frozen=True, slots=True)
class RandomDraw:
    """One recorded random output plus the label that seeded it.

    ``block`` is the block the seed was derived from; a draw without one is
    checked against the session block.
    """

    purpose_label: str
    kind: DrawKind
    output: tuple[Any, ...]
    seed: str | None = None
    block: BlockRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "purpose_label": self.purpose_label,
            "kind": self.kind.value,
            "output": list(self.output),
            "seed": self.seed,
            "block": self.block.to_dict() if self.block else None,
        }

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> RandomDraw:
        block = raw.get("block")
        return RandomDraw(
            purpose_label=str(raw["purpose_label"]),
            kind=DrawKind(raw["kind"]),
            output=tuple(raw["output"]),
            seed=raw.get("seed"),
            block=BlockRecord.from_dict(block) if block else None,
        )


@dataclass(frozen=True, slots=True)
class Move:
    from_point: int | str
    to_point: int | str
    die_value: int
    player: Player

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_point,
            "to": self.to_point,
            "die": self.die_value,
            "player": self.player.value,
        }

    @staticmethod
    def from_dict(raw: Mapping[str, Any], player: Player | None = None) -> Move:
        return Move(
            from_point=raw["from"],
            to_point=raw["to"],
            die_value=int(raw["die"]),
            player=player or Player(raw["player"]),
        )


@dataclass(slots=True)
class Submission:
    game_type: GameType
    game_id: str
    action_history: list[Any]
    random_history: list[RandomDraw]
    claimed_score: int | float | None
    claimed_final_state: dict[str, Any] | None = None
    secret: str | None = None
    secret_hash: str | None = None
    block: BlockRecord | None = None
    initial_state: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_type": self.game_type.value,
            "game_id": self.game_id,
            "action_history": self.action_history,
            "random_history": [d.to_dict() for d in self.random_history],
            "claimed_score": self.claimed_score,
            "claimed_final_state": self.claimed_final_state,
            "secret": self.secret,
            "secret_hash": self.secret_hash,
            "block": self.block.to_dict() if self.block else None,
            "initial_state": self.initial_state,
            "metadata": self.metadata,
        }

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> Submission:
        block = raw.get("block")
        return Submission(
            game_type=GameType(raw["game_type"]),
            game_id=str(raw.get("game_id", "")),
            action_history=list(raw.get("action_history") or []),
            random_history=[RandomDraw.from_dict(d) for d in raw.get("random_history") or []],
            claimed_score=raw.get("claimed_score"),
            claimed_final_state=raw.get("claimed_final_state"),
            secret=raw.get("secret"),
            secret_hash=raw.get("secret_hash"),
            block=BlockRecord.from_dict(block) if block else None,
            initial_state=raw.get("initial_state"),
            metadata=dict(raw.get("metadata") or {}),
        )


@dataclass(slots=True)
class GameRecord:
    game_id: str
    game_type: GameType
    session_id: str | None
    action_history: list[Any]
    random_history: list[RandomDraw]
    claimed_score: int | float | None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err:
    kind: ErrorKind
    detail: str

    @property
    def ok(self) -> bool:
        return False


Result = Ok | Err


@dataclass(slots=True)
class ScoreReport:
    calculated_score: int | float
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class FraudAssessment:
    risk_score: int
    flags: list[str]
    recommendation: Recommendation


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


@dataclass(slots=True)
class ValidationResult:
    ok: bool
    issues: list[ValidationIssue]


class ValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        message = "; ".join(f"{i.code}:{i.entity_id}:{i.message}" for i in issues)
        super().__init__(message)
        self.issues = issues


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    engine_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]


@dataclass(slots=True)
class ActionRequest:
    request_id: str
    action_type: ActionType | str
    payload: dict[str, Any]
    actor_id: str = "anonymous"


@dataclass(slots=True)
class ActionResult:
    request_id: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class EntropySource(Protocol):
    def fetch(self, block_identifier: str | None = None) -> BlockRecord: ...


class SessionRepository(Protocol):
    def save_session(self, session: SessionRecord) -> None: ...

    def load_session(self, session_id: str) -> SessionRecord | None: ...

    def append_draw(self, session_id: str, draw: DrawRecord) -> None: ...

    def mark_ended(self, session_id: str, ended_at: datetime) -> None: ...
