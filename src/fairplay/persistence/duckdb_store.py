from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from fairplay.contracts import FraudAssessment, Recommendation, Submission

try:
    import duckdb
except ModuleNotFoundError:  # pragma: no cover
    duckdb = None  # type: ignore[assignment]

FLAGGED = (Recommendation.ACCEPT_WITH_FLAG.value, Recommendation.MANUAL_REVIEW.value, Recommendation.REJECT.value)


class ValidationAuditStore:
    """Append-only analytics log of every validation outcome."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> Any:
        if duckdb is None:
            raise RuntimeError("duckdb is required for validation audit operations")
        return duckdb.connect(str(self.db_path))

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE SEQUENCE IF NOT EXISTS audit_seq START 1;

                CREATE TABLE IF NOT EXISTS validation_audit (
                    audit_id BIGINT DEFAULT nextval('audit_seq') PRIMARY KEY,
                    recorded_at TIMESTAMP DEFAULT current_timestamp,
                    game_id VARCHAR,
                    game_type VARCHAR,
                    player_id VARCHAR,
                    level VARCHAR,
                    valid BOOLEAN,
                    error_kind VARCHAR,
                    reason VARCHAR,
                    claimed_score DOUBLE,
                    calculated_score DOUBLE,
                    risk_score INTEGER,
                    recommendation VARCHAR,
                    flags_json VARCHAR
                );
                """
            )

    def record(
        self,
        submission: Submission,
        summary: dict[str, Any],
        level: str,
        player_id: str = "anonymous",
        assessment: FraudAssessment | None = None,
    ) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO validation_audit(
                    game_id, game_type, player_id, level, valid, error_kind, reason,
                    claimed_score, calculated_score, risk_score, recommendation, flags_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    submission.game_id,
                    submission.game_type.value,
                    player_id,
                    level,
                    bool(summary["valid"]),
                    summary.get("kind"),
                    summary.get("reason"),
                    submission.claimed_score,
                    summary.get("calculated_score"),
                    assessment.risk_score if assessment else None,
                    assessment.recommendation.value if assessment else None,
                    json.dumps(list(assessment.flags) if assessment else []),
                ],
            )

    def stats(self) -> dict[str, Any]:
        with self.connect() as conn:
            total, valid = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(CASE WHEN valid THEN 1 ELSE 0 END), 0) FROM validation_audit"
            ).fetchone()
            by_game = conn.execute(
                """
                SELECT game_type, COUNT(*), SUM(CASE WHEN valid THEN 1 ELSE 0 END)
                FROM validation_audit GROUP BY game_type ORDER BY game_type
                """
            ).fetchall()
            by_kind = conn.execute(
                """
                SELECT error_kind, COUNT(*) FROM validation_audit
                WHERE NOT valid GROUP BY error_kind ORDER BY error_kind
                """
            ).fetchall()
        return {
            "total": int(total),
            "valid": int(valid),
            "invalid": int(total) - int(valid),
            "by_game": {game: {"total": int(n), "valid": int(ok)} for game, n, ok in by_game},
            "by_error_kind": {kind: int(n) for kind, n in by_kind},
        }

    def flagged(self, limit: int = 50) -> list[dict[str, Any]]:
        placeholders = ",".join(["?"] * len(FLAGGED))
        with self.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT game_id, game_type, player_id, risk_score, recommendation, flags_json, recorded_at
                FROM validation_audit
                WHERE recommendation IN ({placeholders})
                ORDER BY risk_score DESC, audit_id DESC
                LIMIT ?
                """,
                [*FLAGGED, limit],
            ).fetchall()
        return [
            {
                "game_id": game_id,
                "game_type": game_type,
                "player_id": player_id,
                "risk_score": risk,
                "recommendation": recommendation,
                "flags": json.loads(flags or "[]"),
                "recorded_at": str(recorded_at),
            }
            for game_id, game_type, player_id, risk, recommendation, flags, recorded_at in rows
        ]
