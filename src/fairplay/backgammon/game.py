from __future__ import annotations

import logging
from typing import Any

from fairplay.backgammon.board import BoardState
from fairplay.backgammon.legality import MoveLegalityEngine
from fairplay.backgammon.oracle import MoveOracle, OracleGate
from fairplay.backgammon.scoring import CUBE_VALUES, WinType, game_score, win_type, winner
from fairplay.contracts import Difficulty, DrawKind, GameType, Move, Player, RandomDraw, Reveal, Submission
from fairplay.core import IllegalAction, make_game_id
from fairplay.fairness.expander import expand_dice, rejection_pair
from fairplay.fairness.seeds import SeedProtocol

logger = logging.getLogger(__name__)

HUMAN_SEAT = Player.WHITE


def roll_label(turn_number: int) -> str:
    return f"roll-{turn_number}"


class BackgammonGame:
    """One seeded game. Dice come from the session, moves pass the legality gate."""

    def __init__(
        self,
        protocol: SeedProtocol,
        session_id: str,
        block_height: int,
        difficulty: Difficulty = Difficulty.NORMAL,
        board: BoardState | None = None,
        engine: MoveLegalityEngine | None = None,
        gate: OracleGate | None = None,
    ) -> None:
        self.protocol = protocol
        self.session_id = session_id
        self.game_id = make_game_id("BGM", block_height)
        self.difficulty = difficulty
        self.initial_board = board or BoardState.initial()
        self.board = self.initial_board
        self.engine = engine or MoveLegalityEngine()
        self.gate = gate or OracleGate()
        self.current = HUMAN_SEAT
        self.turn_number = 0
        self.cube = 1
        self.cube_owner: Player | None = None
        self.winner: Player | None = None
        self.result_type: WinType | None = None
        self.action_history: list[dict[str, Any]] = []
        self.random_history: list[RandomDraw] = []

    @property
    def over(self) -> bool:
        return self.winner is not None

    def _roll(self) -> tuple[int, int]:
        self.turn_number += 1
        label = roll_label(self.turn_number)
        drawn = self.protocol.derive_record(self.session_id, label)
        seed = drawn.seed
        pair = rejection_pair(seed)
        self.random_history.append(RandomDraw(label, DrawKind.PAIR, pair, seed, drawn.block))
        return pair

    def offer_double(self, accepted: bool) -> None:
        if self.over:
            raise IllegalAction("game is over")
        if self.cube_owner not in (None, self.current):
            raise IllegalAction(f"{self.current.value} does not own the cube")
        if self.cube * 2 > CUBE_VALUES[-1]:
            raise IllegalAction("cube is at its maximum")
        self.action_history.append({"type": "double", "player": self.current.value, "accepted": accepted})
        if accepted:
            self.cube *= 2
            self.cube_owner = self.current.opponent
            return
        self.winner = self.current
        self.result_type = WinType.NORMAL

    def play_turn(self, oracle: MoveOracle | None) -> list[Move]:
        if self.over:
            raise IllegalAction("game is over")
        remaining = expand_dice(self._roll())
        moves: list[Move] = []
        while remaining:
            legal = self.engine.legal_moves(self.board, remaining, self.current)
            if not legal:
                break
            move = self.gate.choose(oracle, self.board, legal, self.current)
            self.board = self.board.apply(move)
            remaining.remove(move.die_value)
            moves.append(move)

        self.action_history.append(
            {"type": "turn", "player": self.current.value, "moves": [m.to_dict() for m in moves]}
        )
        won_by = winner(self.board)
        if won_by is not None:
            self.winner = won_by
            self.result_type = win_type(self.board, won_by)
            logger.info("game finished game_id=%s winner=%s type=%s", self.game_id, won_by.value, self.result_type.value)
        else:
            self.current = self.current.opponent
        return moves

    def play_to_end(self, white: MoveOracle, black: MoveOracle, max_turns: int = 2000) -> None:
        while not self.over:
            if self.turn_number >= max_turns:
                raise IllegalAction(f"game did not finish within {max_turns} turns")
            self.play_turn(white if self.current is Player.WHITE else black)

    def score(self) -> int:
        if self.winner is not HUMAN_SEAT or self.result_type is None:
            return 0
        return game_score(self.result_type, self.cube, self.difficulty)

    def final_state(self) -> dict[str, Any]:
        return {
            "board": self.board.to_dict(),
            "cube": self.cube,
            "winner": self.winner.value if self.winner else None,
            "win_type": self.result_type.value if self.result_type else None,
        }

    def submission(self, reveal: Reveal) -> Submission:
        return Submission(
            game_type=GameType.BACKGAMMON,
            game_id=self.game_id,
            action_history=list(self.action_history),
            random_history=list(self.random_history),
            claimed_score=self.score(),
            claimed_final_state=self.final_state(),
            secret=reveal.secret,
            secret_hash=reveal.secret_hash,
            block=reveal.block,
            initial_state={"board": self.initial_board.to_dict()},
            metadata={"difficulty": self.difficulty.value},
        )
