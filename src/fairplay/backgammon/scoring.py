from __future__ import annotations

from enum import Enum

from fairplay.backgammon.board import CHECKERS_PER_SIDE, HOME, BoardState
from fairplay.contracts import Difficulty, Player

CUBE_VALUES = (1, 2, 4, 8, 16, 32, 64)
DIFFICULTY_MULTIPLIER = {
    Difficulty.EASY: 1,
    Difficulty.NORMAL: 2,
    Difficulty.HARD: 3,
}


class WinType(str, Enum):
    NORMAL = "normal"
    GAMMON = "gammon"
    BACKGAMMON = "backgammon"

    @property
    def multiplier(self) -> int:
        return {WinType.NORMAL: 1, WinType.GAMMON: 2, WinType.BACKGAMMON: 3}[self]


def winner(board: BoardState) -> Player | None:
    for player in Player:
        if board.off(player) == CHECKERS_PER_SIDE:
            return player
    return None


def win_type(board: BoardState, won_by: Player) -> WinType:
    loser = won_by.opponent
    if board.off(loser) > 0:
        return WinType.NORMAL
    in_winner_home = any(board.count(i, loser) for i in HOME[won_by])
    if board.bar(loser) or in_winner_home:
        return WinType.BACKGAMMON
    return WinType.GAMMON


def game_score(kind: WinType, cube: int, difficulty: Difficulty) -> int:
    if cube not in CUBE_VALUES:
        raise ValueError(f"invalid cube value {cube}")
    return kind.multiplier * cube * DIFFICULTY_MULTIPLIER[difficulty]
