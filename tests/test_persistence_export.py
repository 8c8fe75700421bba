from __future__ import annotations

import sqlite3
from datetime import datetime, UTC
from pathlib import Path

import duckdb
import pytest

from fairplay.contracts import FraudAssessment, GameRecord, GameType, Recommendation, Submission
from fairplay.core import StructuralError
from fairplay.export import ExportService
from fairplay.games.yahtzee import YahtzeeGame
from fairplay.persistence import MIGRATIONS, MigrationRunner, SessionStore, ValidationAuditStore
from tests.helpers import BLOCK, SECRET, make_protocol


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    s = SessionStore(tmp_path / "data" / "sessions.sqlite3")
    s.initialize_schema()
    return s


def test_migrations_apply_once(store: SessionStore):
    store.initialize_schema()
    with sqlite3.connect(store.db_path) as conn:
        versions = MigrationRunner(conn).applied_versions()
        columns = {r[1] for r in conn.execute("PRAGMA table_info(game_records)")}
    assert versions == [v for v, _ in MIGRATIONS]
    assert "player_id" in columns


def test_protocol_sessions_survive_a_new_store(store: SessionStore):
    protocol = make_protocol(repository=store)
    session_id = protocol.start_session().session_id
    seed = protocol.derive(session_id, "roll-1")

    reopened = SessionStore(store.db_path)
    loaded = reopened.load_session(session_id)
    assert loaded.secret == SECRET
    assert loaded.block == BLOCK
    assert [d.seed for d in loaded.purpose_log] == [seed]
    assert not loaded.ended

    later = make_protocol(repository=reopened)
    with pytest.raises(StructuralError):
        later.derive(session_id, "roll-1")
    reveal = later.end_session(session_id)
    assert reveal.purpose_log[0].seed == seed
    assert reopened.load_session(session_id).ended


def test_duplicate_label_is_refused_by_the_schema(store: SessionStore):
    protocol = make_protocol(repository=store)
    session_id = protocol.start_session().session_id
    protocol.derive(session_id, "roll-1")
    draw = store.load_session(session_id).purpose_log[0]
    with pytest.raises(StructuralError):
        store.append_draw(session_id, draw)


def test_game_records_and_player_history(store: SessionStore):
    protocol = make_protocol(repository=store)
    session_id = protocol.start_session().session_id
    game = YahtzeeGame(protocol, session_id, BLOCK.height)
    game.play_to_end()
    record = GameRecord(
        game_id=game.game_id,
        game_type=GameType.YAHTZEE,
        session_id=session_id,
        action_history=game.action_history,
        random_history=game.random_history,
        claimed_score=game.card.grand_total,
        created_at=datetime(2026, 10, 1, tzinfo=UTC),
    )
    store.save_game_record(record, player_id="p1")

    loaded = store.load_game_record(game.game_id)
    assert loaded.action_history == game.action_history
    assert loaded.random_history == game.random_history
    assert store.load_game_record("YAH-0-missing") is None

    history = store.recent_games("p1")
    assert len(history) == 1
    assert history[0].score == game.card.grand_total
    assert store.recent_games("someone-else") == []


def _submission(game_id: str, score: float) -> Submission:
    return Submission(GameType.YAHTZEE, game_id, [], [], score, block=BLOCK)


@pytest.fixture
def audit(tmp_path: Path) -> ValidationAuditStore:
    a = ValidationAuditStore(tmp_path / "data" / "audit.duckdb")
    a.initialize_schema()
    a.record(_submission("YAH-1-a", 200), {"valid": True, "calculated_score": 200}, "full", "p1",
             FraudAssessment(0, [], Recommendation.ACCEPT))
    a.record(_submission("YAH-1-b", 380), {"valid": False, "kind": "IllegalAction", "reason": "score mismatch"}, "logic", "p2")
    a.record(_submission("YAH-1-c", 300), {"valid": False, "kind": "StructuralError", "reason": "fraud"}, "full", "p2",
             FraudAssessment(80, ["fast"], Recommendation.REJECT))
    return a


def test_audit_stats_and_flagged(audit: ValidationAuditStore):
    stats = audit.stats()
    assert stats["total"] == 3
    assert stats["valid"] == 1
    assert stats["by_game"]["yahtzee"] == {"total": 3, "valid": 1}
    assert stats["by_error_kind"] == {"IllegalAction": 1, "StructuralError": 1}

    flagged = audit.flagged()
    assert [f["game_id"] for f in flagged] == ["YAH-1-c"]
    assert flagged[0]["flags"] == ["fast"]


def test_export_writes_csv_and_parquet(audit: ValidationAuditStore, tmp_path: Path):
    outputs = ExportService(audit.db_path).export_audit_datasets(tmp_path / "exports")
    assert len(outputs) == 6
    assert all(p.exists() for p in outputs)
    with duckdb.connect() as conn:
        parquet = next(p for p in outputs if p.name == "validation_audit.parquet")
        (count,) = conn.execute(f"SELECT COUNT(*) FROM read_parquet('{parquet.as_posix()}')").fetchone()
    assert count == 3
