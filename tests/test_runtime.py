from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

import pytest

from fairplay.cli import main
from fairplay.contracts import ActionRequest, ActionType
from fairplay.core import FairplayConfig
from fairplay.games.yahtzee import YahtzeeGame
from fairplay.runtime import FairplayRuntime
from tests.helpers import BLOCK, SECRET, static_entropy


def _runtime(tmp_path: Path, **config) -> FairplayRuntime:
    return FairplayRuntime(
        tmp_path,
        config=FairplayConfig(**config),
        entropy=static_entropy(),
        secret_factory=lambda: SECRET,
        clock=lambda: 0.0,
    )


def _act(runtime: FairplayRuntime, action: ActionType | str, payload=None, actor: str = "p1"):
    return runtime.handle_action(ActionRequest(f"req-{action}", action, payload or {}, actor))


def _played_game(runtime: FairplayRuntime):
    started = _act(runtime, ActionType.START_SESSION)
    session_id = started.data["session_id"]
    game = YahtzeeGame(runtime.protocol, session_id, BLOCK.height)
    game.play_to_end()
    reveal = runtime.protocol.end_session(session_id)
    return session_id, game, game.submission(reveal)


def test_session_lifecycle_and_draw_verification(tmp_path: Path):
    runtime = _runtime(tmp_path)
    started = _act(runtime, ActionType.START_SESSION)
    assert started.success
    assert started.data["block"]["height"] == BLOCK.height
    session_id = started.data["session_id"]

    derived = _act(runtime, ActionType.DERIVE_SEED, {"session_id": session_id, "purpose_label": "roll-1"})
    assert derived.success
    reused = _act(runtime, ActionType.DERIVE_SEED, {"session_id": session_id, "purpose_label": "roll-1"})
    assert not reused.success
    assert reused.data["kind"] == "StructuralError"

    ended = _act(runtime, ActionType.END_SESSION, {"session_id": session_id})
    assert ended.data["secret"] == SECRET
    assert ended.data["purpose_log"][0]["seed"] == derived.data["seed"]

    draw = {"purpose_label": "roll-1", "kind": "dice", "output": [], "seed": derived.data["seed"]}
    verified = _act(
        runtime,
        ActionType.VERIFY_DRAW,
        {"secret": SECRET, "secret_hash": ended.data["secret_hash"], "block": ended.data["block"], "draws": [draw]},
    )
    assert verified.success
    assert verified.data == {"valid": True, "seeds": [derived.data["seed"]]}

    forged = dict(draw, seed="0" * 64)
    rejected = _act(runtime, ActionType.VERIFY_DRAW, {"secret": SECRET, "block": ended.data["block"], "draw": forged})
    assert not rejected.success
    assert rejected.data["kind"] == "SeedMismatch"


def test_submit_score_records_audit_and_history(tmp_path: Path):
    runtime = _runtime(tmp_path)
    session_id, game, submission = _played_game(runtime)

    accepted = _act(runtime, ActionType.SUBMIT_SCORE, {"submission": submission.to_dict(), "session_id": session_id})
    assert accepted.success, accepted.message
    assert accepted.data["calculated_score"] == game.card.grand_total
    assert accepted.data["recommendation"] == "ACCEPT"
    assert runtime.store.load_game_record(game.game_id).session_id == session_id
    assert len(runtime.store.recent_games("p1")) == 1

    tampered = submission.to_dict()
    tampered["claimed_score"] = game.card.grand_total + 50
    refused = _act(runtime, ActionType.SUBMIT_SCORE, {"submission": tampered})
    assert not refused.success
    assert refused.data["kind"] == "IllegalAction"

    stats = _act(runtime, ActionType.GET_VALIDATION_STATS)
    assert stats.data["total"] == 2
    assert stats.data["valid"] == 1
    assert stats.data["by_error_kind"] == {"IllegalAction": 1}

    flagged = _act(runtime, ActionType.GET_FLAGGED_SUBMISSIONS, {"limit": 5})
    assert flagged.data["flagged"] == []

    exported = _act(runtime, ActionType.EXPORT_AUDIT)
    assert exported.success
    assert all(Path(p).exists() for p in exported.data["paths"])


def test_rate_limit_refuses_second_submission(tmp_path: Path):
    runtime = _runtime(tmp_path, rate_limit_max_submissions=1)
    _, _, submission = _played_game(runtime)
    assert _act(runtime, ActionType.SUBMIT_SCORE, {"submission": submission.to_dict()}).success
    limited = _act(runtime, ActionType.SUBMIT_SCORE, {"submission": submission.to_dict()})
    assert not limited.success
    assert limited.data["retry_after_seconds"] == 60
    assert _act(runtime, ActionType.SUBMIT_SCORE, {"submission": submission.to_dict()}, actor="p2").success


def test_malformed_requests_fail_without_halting(tmp_path: Path):
    runtime = _runtime(tmp_path)
    unknown = _act(runtime, "shuffle_everything")
    assert not unknown.success
    assert unknown.data["kind"] == "StructuralError"

    missing = _act(runtime, ActionType.SUBMIT_SCORE, {"submission": {"game_type": "poker"}})
    assert missing.data["kind"] == "StructuralError"
    assert not runtime.halted


def test_commitment_mismatch_halts_runtime(tmp_path: Path):
    runtime = _runtime(tmp_path)
    session_id = _act(runtime, ActionType.START_SESSION).data["session_id"]
    with sqlite3.connect(runtime.paths.sqlite_path) as conn:
        conn.execute("UPDATE sessions SET secret = ? WHERE session_id = ?", ("f" * 64, session_id))

    failed = _act(runtime, ActionType.END_SESSION, {"session_id": session_id})
    assert not failed.success
    assert failed.data["kind"] == "CommitmentMismatch"
    artifact = json.loads(Path(failed.data["forensic_path"]).read_text(encoding="utf-8"))
    assert artifact["error_code"] == "COMMITMENT_MISMATCH"

    assert runtime.halted
    after = _act(runtime, ActionType.START_SESSION)
    assert not after.success
    assert "halted" in after.message


@pytest.fixture
def blocks_file(tmp_path: Path) -> Path:
    path = tmp_path / "blocks.json"
    path.write_text(json.dumps([BLOCK.to_dict()]), encoding="utf-8")
    return path


def _cli(capsys, tmp_path: Path, blocks_file: Path, *argv: str):
    code = main(["--root", str(tmp_path / "rt"), "--blocks", str(blocks_file), *argv])
    out = capsys.readouterr().out
    message, _, body = out.partition("\n")
    return code, message, json.loads(body) if body.strip() else {}


def test_cli_session_commands(capsys, tmp_path: Path, blocks_file: Path):
    code, _, started = _cli(capsys, tmp_path, blocks_file, "start-session")
    assert code == 0
    session_id = started["session_id"]

    code, _, derived = _cli(capsys, tmp_path, blocks_file, "derive", session_id, "roll-1")
    assert code == 0
    assert len(derived["seed"]) == 64

    code, _, _ = _cli(capsys, tmp_path, blocks_file, "derive", session_id, "roll-1")
    assert code == 1

    code, _, reveal = _cli(capsys, tmp_path, blocks_file, "end-session", session_id)
    assert code == 0
    assert reveal["purpose_log"][0]["seed"] == derived["seed"]

    code, _, stats = _cli(capsys, tmp_path, blocks_file, "stats")
    assert code == 0
    assert stats["total"] == 0


def test_cli_log_level_comes_from_config_unless_given(capsys, monkeypatch, tmp_path: Path, blocks_file: Path):
    logger = logging.getLogger("fairplay")
    monkeypatch.setattr(logger, "level", logger.level)
    root = tmp_path / "rt"
    root.mkdir()
    (root / "fairplay.json").write_text(json.dumps({"log_level": "debug"}), encoding="utf-8")

    code, _, _ = _cli(capsys, tmp_path, blocks_file, "stats")
    assert code == 0
    assert logger.level == logging.DEBUG

    code, _, _ = _cli(capsys, tmp_path, blocks_file, "--log-level", "ERROR", "stats")
    assert code == 0
    assert logger.level == logging.ERROR
