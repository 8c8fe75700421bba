from __future__ import annotations

import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable

from fairplay.contracts import (
    ActionRequest,
    ActionResult,
    ActionType,
    BlockRecord,
    EntropySource,
    GameRecord,
    Ok,
    RandomDraw,
    Reveal,
    Submission,
    ValidationError,
    ValidationLevel,
)
from fairplay.core import (
    CommitmentMismatch,
    FairnessError,
    FairplayConfig,
    RuntimePaths,
    StructuralError,
    build_forensic_artifact,
    load_config,
    now_utc,
    persist_forensic_artifact,
)
from fairplay.export import ExportService
from fairplay.fairness import ExplorerEntropySource, SeedProtocol, generate_secret, verify_draw, verify_history
from fairplay.fairness.seeds import FRESH_BLOCK
from fairplay.persistence import SessionStore, ValidationAuditStore
from fairplay.validation import FraudAnalyzer, RateLimiter, SubmissionValidator, default_validator, summarize

logger = logging.getLogger(__name__)


def reveal_payload(reveal: Reveal) -> dict[str, Any]:
    return {
        "session_id": reveal.session_id,
        "secret": reveal.secret,
        "secret_hash": reveal.secret_hash,
        "block": reveal.block.to_dict(),
        "purpose_log": [
            {"purpose_label": d.purpose_label, "block": d.block.to_dict(), "seed": d.seed} for d in reveal.purpose_log
        ],
    }


class FairplayRuntime:
    """Single entry point for session, verification and submission actions.

    ``handle_action`` never raises: fairness errors come back as failed
    results carrying their kind, and anything unexpected is written to a
    forensic artifact first.
    """

    def __init__(
        self,
        root: Path,
        config: FairplayConfig | None = None,
        entropy: EntropySource | None = None,
        secret_factory: Callable[[], str] = generate_secret,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.paths = RuntimePaths(root)
        self.config = config or load_config(self.paths.config_path)
        self.entropy = entropy or ExplorerEntropySource(
            self.config.explorer_base_url, timeout=self.config.entropy_timeout_seconds
        )
        self.store = SessionStore(self.paths.sqlite_path)
        self.store.initialize_schema()
        self.protocol = SeedProtocol(self.entropy, self.store, secret_factory=secret_factory)
        self.validator = SubmissionValidator(
            default_validator(self.config.chess_score_tolerance),
            FraudAnalyzer(self.config.fraud_review_threshold, self.config.fraud_reject_threshold),
        )
        self.rate_limiter = RateLimiter(
            self.config.rate_limit_max_submissions, self.config.rate_limit_window_seconds, clock=clock
        )
        self._audit: ValidationAuditStore | None = None

        self.halted = False
        self.last_forensic_path: str | None = None

    @property
    def audit(self) -> ValidationAuditStore:
        if self._audit is None:
            store = ValidationAuditStore(self.paths.duckdb_path)
            store.initialize_schema()
            self._audit = store
        return self._audit

    def handle_action(self, request: ActionRequest) -> ActionResult:
        if self.halted:
            return ActionResult(
                request.request_id,
                False,
                f"runtime halted after integrity failure; forensic={self.last_forensic_path}",
                {"forensic_path": self.last_forensic_path},
            )

        try:
            return self._handle_action_core(request)
        except CommitmentMismatch as exc:
            artifact = exc.artifact or build_forensic_artifact(
                engine_scope="runtime",
                error_code="COMMITMENT_MISMATCH",
                message=exc.detail,
                state_snapshot={},
                context={"action_type": str(request.action_type), "payload": request.payload},
                identifiers={"request_id": request.request_id, "actor_id": request.actor_id},
                causal_fragment=["runtime_dispatch"],
            )
            self.last_forensic_path = str(persist_forensic_artifact(artifact, self.paths.forensic_dir))
            self.halted = True
            logger.error("integrity failure request_id=%s forensic=%s", request.request_id, self.last_forensic_path)
            return ActionResult(
                request.request_id,
                False,
                f"integrity failure: {exc.detail}",
                {"kind": exc.kind.value, "forensic_path": self.last_forensic_path},
            )
        except FairnessError as exc:
            return ActionResult(request.request_id, False, exc.detail, {"kind": exc.kind.value})
        except ValidationError as exc:
            return ActionResult(
                request.request_id,
                False,
                "request rejected by shape checks",
                {"issues": [asdict(i) for i in exc.issues]},
            )
        except Exception as exc:
            artifact = build_forensic_artifact(
                engine_scope="runtime",
                error_code="UNHANDLED_RUNTIME_EXCEPTION",
                message=str(exc),
                state_snapshot={"halted": self.halted},
                context={"action_type": str(request.action_type), "payload": request.payload},
                identifiers={"request_id": request.request_id, "actor_id": request.actor_id},
                causal_fragment=["runtime_dispatch", type(exc).__name__],
            )
            self.last_forensic_path = str(persist_forensic_artifact(artifact, self.paths.forensic_dir))
            logger.error("unhandled exception request_id=%s error=%r", request.request_id, exc)
            return ActionResult(
                request.request_id,
                False,
                f"runtime error: {exc}",
                {"forensic_path": self.last_forensic_path},
            )

    def _normalize_action(self, action_type: ActionType | str) -> ActionType:
        if isinstance(action_type, ActionType):
            return action_type
        try:
            return ActionType(str(action_type))
        except ValueError as exc:
            raise StructuralError(f"unsupported action {action_type!r}") from exc

    def _handle_action_core(self, request: ActionRequest) -> ActionResult:
        action = self._normalize_action(request.action_type)
        payload = request.payload

        if action == ActionType.START_SESSION:
            started = self.protocol.start_session()
            return ActionResult(
                request.request_id,
                True,
                f"session {started.session_id} started",
                {"session_id": started.session_id, "secret_hash": started.secret_hash, "block": started.block.to_dict()},
            )

        if action == ActionType.DERIVE_SEED:
            session_id = self._required(payload, "session_id")
            label = self._required(payload, "purpose_label")
            block = payload.get("block")
            if isinstance(block, dict):
                block = BlockRecord.from_dict(block)
            elif block not in (None, FRESH_BLOCK):
                raise StructuralError("block must be a block record or 'fresh'")
            seed = self.protocol.derive(session_id, label, block)
            return ActionResult(request.request_id, True, f"seed derived for {label}", {"seed": seed, "purpose_label": label})

        if action == ActionType.END_SESSION:
            reveal = self.protocol.end_session(self._required(payload, "session_id"))
            return ActionResult(request.request_id, True, f"session {reveal.session_id} ended", reveal_payload(reveal))

        if action == ActionType.VERIFY_DRAW:
            return self._verify_draw(request)

        if action == ActionType.SUBMIT_SCORE:
            return self._submit_score(request)

        if action == ActionType.GET_VALIDATION_STATS:
            return ActionResult(request.request_id, True, "validation stats", self.audit.stats())

        if action == ActionType.GET_FLAGGED_SUBMISSIONS:
            flagged = self.audit.flagged(int(payload.get("limit", 50)))
            return ActionResult(request.request_id, True, f"{len(flagged)} flagged submissions", {"flagged": flagged})

        if action == ActionType.EXPORT_AUDIT:
            outputs = self.export()
            return ActionResult(request.request_id, True, f"exported {len(outputs)} files", {"paths": [str(p) for p in outputs]})

        raise StructuralError(f"action {action.value} is not dispatched")

    def _required(self, payload: dict[str, Any], key: str) -> Any:
        value = payload.get(key)
        if value in (None, ""):
            raise StructuralError(f"payload field {key!r} is required")
        return value

    def _verify_draw(self, request: ActionRequest) -> ActionResult:
        payload = request.payload
        try:
            block = BlockRecord.from_dict(self._required(payload, "block"))
            secret = self._required(payload, "secret")
            if "draws" in payload:
                draws = [RandomDraw.from_dict(d) for d in payload["draws"]]
                result = verify_history(secret, self._required(payload, "secret_hash"), block, draws)
            else:
                result = verify_draw(secret, block, RandomDraw.from_dict(self._required(payload, "draw")))
        except (KeyError, TypeError, ValueError) as exc:
            raise StructuralError(f"malformed verification request: {exc!r}") from exc

        if isinstance(result, Ok):
            seeds = result.value if isinstance(result.value, list) else [result.value]
            return ActionResult(request.request_id, True, "draws verified", {"valid": True, "seeds": seeds})
        return ActionResult(
            request.request_id,
            False,
            result.detail,
            {"valid": False, "kind": result.kind.value, "reason": result.detail},
        )

    def _submit_score(self, request: ActionRequest) -> ActionResult:
        payload = request.payload
        decision = self.rate_limiter.check(request.actor_id)
        if not decision.allowed:
            return ActionResult(
                request.request_id,
                False,
                decision.reason,
                {"retry_after_seconds": decision.retry_after_seconds},
            )
        try:
            submission = Submission.from_dict(self._required(payload, "submission"))
            level = ValidationLevel(payload.get("level", self.config.default_validation_level))
        except (KeyError, TypeError, ValueError) as exc:
            raise StructuralError(f"malformed submission: {exc!r}") from exc

        history = self.store.recent_games(request.actor_id)
        result, assessment = self.validator.validate_with_assessment(submission, level, history)
        summary = summarize(result)
        self.audit.record(submission, summary, level.value, player_id=request.actor_id, assessment=assessment)

        data: dict[str, Any] = dict(summary)
        if isinstance(result, Ok):
            data.update(result.value.to_dict())
            self.store.save_game_record(
                GameRecord(
                    game_id=submission.game_id,
                    game_type=submission.game_type,
                    session_id=payload.get("session_id"),
                    action_history=submission.action_history,
                    random_history=submission.random_history,
                    claimed_score=submission.claimed_score,
                    created_at=now_utc(),
                ),
                player_id=request.actor_id,
            )
            return ActionResult(request.request_id, True, f"score accepted for {submission.game_id}", data)
        if assessment is not None:
            data.update({"risk_score": assessment.risk_score, "flags": list(assessment.flags)})
        return ActionResult(request.request_id, False, summary["reason"], data)

    def export(self) -> list[Path]:
        audit = self.audit
        return ExportService(audit.db_path).export_audit_datasets(self.paths.export_dir)
