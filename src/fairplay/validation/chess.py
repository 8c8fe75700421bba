from __future__ import annotations

from fairplay.contracts import GameType, ScoreReport, Submission, ValidationIssue
from fairplay.core import CommitmentMismatch, IllegalAction, StructuralError
from fairplay.games.chess_rules import (
    COLORS,
    MAX_MOVES,
    MIN_MOVES,
    ai_commitment,
    assign_color,
    check_result,
    chess_score,
    opponent_elo,
    replay_san,
)
from fairplay.validation.replay import DrawCursor
from fairplay.validation.structural import ShapeCheck

DEFAULT_TOLERANCE = 0.10


class ChessReplayer:
    """Chess scores derive from an Elo estimate, so they are compared within a relative tolerance."""

    game_type = GameType.CHESS
    needs_secret = False

    def __init__(self, tolerance: float = DEFAULT_TOLERANCE) -> None:
        self.tolerance = tolerance

    def score_matches(self, claimed: float, calculated: float) -> bool:
        return abs(claimed - calculated) <= calculated * self.tolerance

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        moves = submission.action_history
        shape.require(
            MIN_MOVES <= len(moves) <= MAX_MOVES,
            "INVALID_MOVE_COUNT",
            "action_history",
            f"expected {MIN_MOVES}-{MAX_MOVES} moves, got {len(moves)}",
        )
        shape.require(all(isinstance(m, str) for m in moves), "INVALID_MOVE", "action_history", "moves must be SAN strings")
        meta = submission.metadata
        shape.require(meta.get("player_color") in COLORS, "INVALID_PLAYER_COLOR", "metadata.player_color", "player color must be white or black")
        settings = meta.get("ai_settings")
        shape.require(settings is None or isinstance(settings, dict), "INVALID_AI_SETTINGS", "metadata.ai_settings", "settings must be an object")
        result = (submission.claimed_final_state or {}).get("result")
        shape.require(
            isinstance(result, dict) and isinstance(result.get("game_over"), bool),
            "MISSING_RESULT",
            "claimed_final_state.result",
            "a result with a game_over flag is required",
        )
        return shape.issues

    def _block_hash(self, submission: Submission) -> str:
        if submission.block is None:
            raise StructuralError("block record is required to verify colour and engine commitment")
        return submission.block.hash

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        meta = submission.metadata
        player_color = meta["player_color"]
        details: dict[str, object] = {"color_verified": False, "commitment_verified": False}

        if meta.get("user_seed") is not None:
            expected = assign_color(self._block_hash(submission), meta["user_seed"])
            if expected != player_color:
                raise IllegalAction(f"colour mismatch: expected {expected}, claimed {player_color}")
            details["color_verified"] = True

        settings = meta.get("ai_settings") or {}
        if meta.get("ai_commitment") and settings:
            player_seed = meta.get("player_seed", meta.get("user_seed"))
            if player_seed is None:
                raise StructuralError("player seed is required to verify the engine commitment")
            recomputed = ai_commitment(settings, self._block_hash(submission), player_seed)
            if recomputed != meta["ai_commitment"]:
                raise CommitmentMismatch("engine settings do not hash to the published commitment")
            details["commitment_verified"] = True

        board = replay_san(submission.action_history)
        result = submission.claimed_final_state["result"]
        check = check_result(result, board)
        elo = opponent_elo(settings)
        details.update({"result_verified": check.verified, "note": check.note, "opponent_elo": elo, "fen": board.fen()})
        return ScoreReport(calculated_score=chess_score(result, player_color, elo), details=details)
