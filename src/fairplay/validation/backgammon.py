from __future__ import annotations

from typing import Any

from fairplay.backgammon.board import BoardState
from fairplay.backgammon.game import HUMAN_SEAT, roll_label
from fairplay.backgammon.legality import MoveLegalityEngine
from fairplay.backgammon.scoring import CUBE_VALUES, WinType, game_score, win_type, winner
from fairplay.contracts import BAR, OFF, Difficulty, DrawKind, GameType, Move, Player, ScoreReport, Submission, ValidationIssue
from fairplay.core import IllegalAction, StructuralError
from fairplay.validation.replay import DrawCursor, ExactScore
from fairplay.validation.structural import ShapeCheck, is_int

PLAYERS = {p.value for p in Player}


def _valid_point(value: Any, special: str) -> bool:
    return value == special or (is_int(value) and 0 <= value < 24)


class BackgammonReplayer(ExactScore):
    game_type = GameType.BACKGAMMON
    needs_secret = True

    def __init__(self, engine: MoveLegalityEngine | None = None) -> None:
        self.engine = engine or MoveLegalityEngine()

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        initial = submission.initial_state or {}
        if "board" in initial:
            try:
                BoardState.from_dict(initial["board"])
            except StructuralError as exc:
                shape.add("INVALID_INITIAL_BOARD", "initial_state.board", exc.detail)
        difficulty = submission.metadata.get("difficulty", Difficulty.NORMAL.value)
        shape.require(
            difficulty in {d.value for d in Difficulty},
            "INVALID_DIFFICULTY",
            "metadata.difficulty",
            f"unknown difficulty {difficulty!r}",
        )
        for index, action in enumerate(submission.action_history):
            path = f"action_history[{index}]"
            if not shape.require(isinstance(action, dict), "INVALID_ACTION", path, "action must be an object"):
                continue
            shape.require(action.get("player") in PLAYERS, "INVALID_PLAYER", f"{path}.player", "player must be white or black")
            kind = action.get("type")
            if kind == "double":
                shape.require(isinstance(action.get("accepted"), bool), "INVALID_DOUBLE", f"{path}.accepted", "accepted must be a boolean")
            elif kind == "turn":
                moves = action.get("moves")
                if not shape.require(isinstance(moves, list) and len(moves) <= 4, "INVALID_MOVES", f"{path}.moves", "a turn holds at most four moves"):
                    continue
                for ply, raw in enumerate(moves):
                    ok = (
                        isinstance(raw, dict)
                        and _valid_point(raw.get("from"), BAR)
                        and _valid_point(raw.get("to"), OFF)
                        and is_int(raw.get("die"))
                        and 1 <= raw["die"] <= 6
                    )
                    shape.require(ok, "INVALID_MOVE", f"{path}.moves[{ply}]", f"malformed move {raw!r}")
            else:
                shape.add("UNKNOWN_ACTION_TYPE", f"{path}.type", f"unknown action type {kind!r}")
        return shape.issues

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        initial = submission.initial_state or {}
        board = BoardState.from_dict(initial["board"]) if "board" in initial else BoardState.initial()
        difficulty = Difficulty(submission.metadata.get("difficulty", Difficulty.NORMAL.value))
        current = HUMAN_SEAT
        turn = 0
        cube = 1
        cube_owner: Player | None = None
        won_by: Player | None = None
        result: WinType | None = None

        for index, action in enumerate(submission.action_history):
            if won_by is not None:
                raise IllegalAction(f"action {index} comes after the game ended")
            player = Player(action["player"])
            if player is not current:
                raise IllegalAction(f"action {index}: it is {current.value}'s turn")

            if action["type"] == "double":
                if cube_owner not in (None, current):
                    raise IllegalAction(f"action {index}: {current.value} does not own the cube")
                if cube * 2 > CUBE_VALUES[-1]:
                    raise IllegalAction(f"action {index}: cube is already at {cube}")
                if action["accepted"]:
                    cube *= 2
                    cube_owner = current.opponent
                else:
                    won_by, result = current, WinType.NORMAL
                continue

            turn += 1
            draw = draws.take(roll_label(turn), DrawKind.PAIR)
            moves = [Move.from_dict(raw, player=current) for raw in action["moves"]]
            board = self.engine.validate_turn(board, draw.output, current, moves)
            won_by = winner(board)
            if won_by is not None:
                result = win_type(board, won_by)
            else:
                current = current.opponent

        claimed = (submission.claimed_final_state or {}).get("board")
        if claimed is not None and BoardState.from_dict(claimed) != board:
            raise IllegalAction("claimed final board does not match the replayed board")

        score = game_score(result, cube, difficulty) if won_by is HUMAN_SEAT and result else 0
        return ScoreReport(
            calculated_score=score,
            details={
                "turns": turn,
                "cube": cube,
                "winner": won_by.value if won_by else None,
                "win_type": result.value if result else None,
            },
        )
