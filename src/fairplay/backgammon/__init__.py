from .board import BoardState, PointState
from .game import BackgammonGame, roll_label
from .legality import MoveLegalityEngine, single_moves
from .oracle import FirstLegalOracle, MoveOracle, OracleGate
from .scoring import WinType, game_score, win_type, winner

__all__ = [
    "BackgammonGame",
    "BoardState",
    "FirstLegalOracle",
    "MoveLegalityEngine",
    "MoveOracle",
    "OracleGate",
    "PointState",
    "WinType",
    "game_score",
    "roll_label",
    "single_moves",
    "win_type",
    "winner",
]
