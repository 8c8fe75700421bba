"""Chess checks that can be proven from public data.

Moves replay through python-chess. Colour assignment and the engine
commitment are recomputed from the block hash and the player's seed.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import chess

from fairplay.contracts import BlockRecord, GameType, Submission
from fairplay.core import IllegalAction, StructuralError, make_game_id
from fairplay.fairness.expander import sha256_hex

DEFAULT_ELO = 1200
ELO_FLOOR = 300
ELO_DIVISOR = 2.7
DRAW_FACTOR = 0.5
LOSS_FACTOR = 0.1
MIN_MOVES, MAX_MOVES = 2, 500
COLORS = ("white", "black")
RESIGNATION = "resignation"


def assign_color(block_hash: str, user_seed: Any) -> str:
    total = sum(ord(ch) for ch in f"{block_hash}{user_seed}")
    return "white" if total % 2 == 0 else "black"


def settings_json(settings: Mapping[str, Any]) -> str:
    return json.dumps({key: settings[key] for key in sorted(settings)}, separators=(",", ":"))


def ai_commitment(settings: Mapping[str, Any], block_hash: str, player_seed: Any) -> str:
    return sha256_hex(f"{settings_json(settings)}|{block_hash}|{player_seed}")


def opponent_elo(settings: Mapping[str, Any] | None) -> int:
    settings = settings or {}
    for key in ("targetElo", "originalElo"):
        if settings.get(key) is not None:
            return int(settings[key])
    return DEFAULT_ELO


def chess_score(result: Mapping[str, Any], player_color: str, elo: int) -> int:
    if not result.get("game_over"):
        return 0
    base = math.floor((elo - ELO_FLOOR) / ELO_DIVISOR)
    won_by = result.get("winner")
    if won_by == player_color:
        return base
    if won_by is None:
        return math.floor(base * DRAW_FACTOR)
    return math.floor(base * LOSS_FACTOR)


def replay_san(moves: Sequence[str]) -> chess.Board:
    board = chess.Board()
    for index, san in enumerate(moves):
        if not isinstance(san, str):
            raise StructuralError(f"move {index} is not a SAN string")
        try:
            board.push_san(san)
        except ValueError as exc:
            raise IllegalAction(f"illegal move at index {index}: {san!r}") from exc
    return board


@dataclass(slots=True)
class ResultCheck:
    verified: bool
    note: str = ""


def check_result(claimed: Mapping[str, Any], board: chess.Board) -> ResultCheck:
    """Raises ``IllegalAction`` when the claimed result contradicts the final board.

    A resignation cannot be seen in the moves, so it is accepted unverified,
    but only while the replayed position is still in play.
    """
    if not claimed.get("game_over"):
        return ResultCheck(verified=True)
    outcome = board.outcome(claim_draw=True)
    if outcome is None:
        if claimed.get("reason") == RESIGNATION:
            return ResultCheck(verified=False, note="resignation cannot be verified from moves")
        raise IllegalAction("result claims the game is over but the replayed position is still in play")

    won_by = claimed.get("winner")
    if won_by is not None:
        if not board.is_checkmate():
            raise IllegalAction(f"decisive result claimed but the game ended by {outcome.termination.name.lower()}")
        expected = "black" if board.turn == chess.WHITE else "white"
        if won_by != expected:
            raise IllegalAction(f"winner mismatch: expected {expected}, claimed {won_by}")
        return ResultCheck(verified=True)

    if outcome.winner is not None:
        raise IllegalAction("draw claimed but the replayed position is decisive")
    return ResultCheck(verified=True)


class ChessGame:
    """Records a game against an engine whose settings were committed up front."""

    def __init__(
        self,
        block: BlockRecord,
        user_seed: Any,
        ai_settings: Mapping[str, Any],
        player_seed: Any | None = None,
    ) -> None:
        self.block = block
        self.game_id = make_game_id("CHS", block.height)
        self.user_seed = user_seed
        self.player_seed = user_seed if player_seed is None else player_seed
        self.ai_settings = dict(ai_settings)
        self.player_color = assign_color(block.hash, user_seed)
        self.commitment = ai_commitment(self.ai_settings, block.hash, self.player_seed)
        self.board = chess.Board()
        self.moves: list[str] = []
        self.resigned: str | None = None

    def push(self, san: str) -> None:
        if self.result()["game_over"]:
            raise IllegalAction("game is over")
        try:
            move = self.board.parse_san(san)
        except ValueError as exc:
            raise IllegalAction(f"illegal move {san!r}") from exc
        self.moves.append(self.board.san(move))
        self.board.push(move)

    def resign(self, color: str) -> None:
        if color not in COLORS:
            raise StructuralError(f"unknown colour {color!r}")
        if self.result()["game_over"]:
            raise IllegalAction("game is over")
        self.resigned = color

    def result(self) -> dict[str, Any]:
        if self.resigned is not None:
            winner = "black" if self.resigned == "white" else "white"
            return {"game_over": True, "winner": winner, "reason": RESIGNATION}
        outcome = self.board.outcome(claim_draw=True)
        if outcome is None:
            return {"game_over": False, "winner": None, "reason": None}
        winner = None if outcome.winner is None else ("white" if outcome.winner == chess.WHITE else "black")
        return {"game_over": True, "winner": winner, "reason": outcome.termination.name.lower()}

    def score(self) -> int:
        return chess_score(self.result(), self.player_color, opponent_elo(self.ai_settings))

    def submission(self) -> Submission:
        return Submission(
            game_type=GameType.CHESS,
            game_id=self.game_id,
            action_history=list(self.moves),
            random_history=[],
            claimed_score=self.score(),
            claimed_final_state={"result": self.result(), "fen": self.board.fen()},
            block=self.block,
            metadata={
                "player_color": self.player_color,
                "user_seed": self.user_seed,
                "player_seed": self.player_seed,
                "ai_settings": dict(self.ai_settings),
                "ai_commitment": self.commitment,
            },
        )
