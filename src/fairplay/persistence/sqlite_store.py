from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from fairplay.contracts import (
    BlockRecord,
    DrawRecord,
    GameRecord,
    GameType,
    RandomDraw,
    SessionRecord,
    SessionRepository,
)
from fairplay.core import StructuralError
from fairplay.persistence.migrations import MigrationRunner
from fairplay.validation.fraud import PastGame


def _stamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SessionStore(SessionRepository):
    """Authoritative sqlite store for commit-reveal sessions, their draws and submitted games."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            MigrationRunner(conn).apply()

    def save_session(self, session: SessionRecord) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO sessions(session_id, secret_hash, secret, block_json, created_at, ended_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    session.session_id,
                    session.secret_hash,
                    session.secret,
                    json.dumps(session.block.to_dict()),
                    _stamp(session.created_at),
                    _stamp(session.ended_at),
                ),
            )
            conn.execute("DELETE FROM session_draws WHERE session_id = ?", (session.session_id,))
            conn.executemany(
                "INSERT INTO session_draws(session_id, sequence, purpose_label, block_json, seed) VALUES (?, ?, ?, ?, ?)",
                [
                    (session.session_id, seq, d.purpose_label, json.dumps(d.block.to_dict()), d.seed)
                    for seq, d in enumerate(session.purpose_log)
                ],
            )

    def load_session(self, session_id: str) -> SessionRecord | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT session_id, secret_hash, secret, block_json, created_at, ended_at FROM sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            if row is None:
                return None
            draws = conn.execute(
                "SELECT purpose_label, block_json, seed FROM session_draws WHERE session_id = ? ORDER BY sequence",
                (session_id,),
            ).fetchall()
        return SessionRecord(
            session_id=row[0],
            secret_hash=row[1],
            secret=row[2],
            block=BlockRecord.from_dict(json.loads(row[3])),
            purpose_log=[
                DrawRecord(purpose_label=label, block=BlockRecord.from_dict(json.loads(block)), seed=seed)
                for label, block, seed in draws
            ],
            created_at=_parse(row[4]),
            ended_at=_parse(row[5]),
        )

    def append_draw(self, session_id: str, draw: DrawRecord) -> None:
        with self.connect() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM session_draws WHERE session_id = ?", (session_id,)).fetchone()
            try:
                conn.execute(
                    "INSERT INTO session_draws(session_id, sequence, purpose_label, block_json, seed) VALUES (?, ?, ?, ?, ?)",
                    (session_id, count, draw.purpose_label, json.dumps(draw.block.to_dict()), draw.seed),
                )
            except sqlite3.IntegrityError as exc:
                raise StructuralError(f"purpose label {draw.purpose_label!r} already recorded for {session_id}") from exc

    def mark_ended(self, session_id: str, ended_at: datetime) -> None:
        with self.connect() as conn:
            conn.execute("UPDATE sessions SET ended_at = ? WHERE session_id = ?", (_stamp(ended_at), session_id))

    def save_game_record(self, record: GameRecord, player_id: str = "anonymous") -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO game_records(
                    game_id, game_type, session_id, action_history_json, random_history_json, claimed_score, created_at, player_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.game_id,
                    record.game_type.value,
                    record.session_id,
                    json.dumps(record.action_history),
                    json.dumps([d.to_dict() for d in record.random_history]),
                    record.claimed_score,
                    _stamp(record.created_at),
                    player_id,
                ),
            )

    def load_game_record(self, game_id: str) -> GameRecord | None:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT game_id, game_type, session_id, action_history_json, random_history_json, claimed_score, created_at
                FROM game_records WHERE game_id = ?
                """,
                (game_id,),
            ).fetchone()
        if row is None:
            return None
        return GameRecord(
            game_id=row[0],
            game_type=GameType(row[1]),
            session_id=row[2],
            action_history=json.loads(row[3]),
            random_history=[RandomDraw.from_dict(d) for d in json.loads(row[4])],
            claimed_score=row[5],
            created_at=_parse(row[6]),
        )

    def recent_games(self, player_id: str, limit: int = 20) -> list[PastGame]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT game_type, claimed_score, created_at FROM game_records
                WHERE player_id = ? AND created_at IS NOT NULL
                ORDER BY created_at DESC LIMIT ?
                """,
                (player_id, limit),
            ).fetchall()
        return [PastGame(GameType(game_type), float(score or 0), _parse(created_at)) for game_type, score, created_at in rows]
