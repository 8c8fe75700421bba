from .backgammon import BackgammonReplayer
from .blackjack import BlackjackReplayer
from .chess import ChessReplayer
from .fraud import FraudAnalyzer, PastGame, pattern_signals, score_signals
from .garbage import GarbageReplayer
from .grid2048 import Grid2048Replayer
from .master import GAME_ID_PATTERNS, SubmissionValidator, SubmissionVerdict, default_validator, validate_submission
from .rate_limit import RateDecision, RateLimiter
from .replay import DrawCursor, ReplayValidator, summarize
from .solitaire import SolitaireReplayer
from .structural import ShapeCheck
from .yahtzee import YahtzeeReplayer

__all__ = [
    "BackgammonReplayer",
    "BlackjackReplayer",
    "ChessReplayer",
    "DrawCursor",
    "FraudAnalyzer",
    "GAME_ID_PATTERNS",
    "GarbageReplayer",
    "Grid2048Replayer",
    "PastGame",
    "RateDecision",
    "RateLimiter",
    "ReplayValidator",
    "ShapeCheck",
    "SolitaireReplayer",
    "SubmissionValidator",
    "SubmissionVerdict",
    "YahtzeeReplayer",
    "default_validator",
    "pattern_signals",
    "score_signals",
    "summarize",
    "validate_submission",
]
