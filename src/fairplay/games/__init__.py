from .blackjack import BlackjackTable, Outcome, hand_value, is_blackjack, payout, settle, settle_round
from .chess_rules import ChessGame, ai_commitment, assign_color, chess_score
from .garbage import GarbageGame, GarbageRound, garbage_score
from .grid2048 import Direction, Game2048, slide
from .solitaire import KlondikeTable, SolitaireGame
from .yahtzee import Category, Scorecard, YahtzeeGame, category_score

__all__ = [
    "BlackjackTable",
    "Category",
    "ChessGame",
    "Direction",
    "Game2048",
    "GarbageGame",
    "GarbageRound",
    "KlondikeTable",
    "Outcome",
    "Scorecard",
    "SolitaireGame",
    "YahtzeeGame",
    "ai_commitment",
    "assign_color",
    "category_score",
    "chess_score",
    "garbage_score",
    "hand_value",
    "is_blackjack",
    "payout",
    "settle",
    "settle_round",
    "slide",
]
