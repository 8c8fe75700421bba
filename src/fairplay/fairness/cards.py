from __future__ import annotations

from fairplay.fairness.expander import permute

SUITS = ("♠", "♥", "♦", "♣")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")
SHOE_SUIT_CODES = {"♠": "S", "♥": "H", "♦": "D", "♣": "C"}
SUIT_NAMES = {"♠": "spades", "♥": "hearts", "♦": "diamonds", "♣": "clubs"}
RED_SUITS = {"♥", "♦"}

SHOE_DECKS = 6


def standard_deck() -> list[str]:
    return [f"{rank}{suit}" for suit in SUITS for rank in RANKS]


def shoe(decks: int = SHOE_DECKS) -> list[str]:
    return [
        f"{rank}{SHOE_SUIT_CODES[suit]}-{deck}"
        for deck in range(1, decks + 1)
        for suit in SUITS
        for rank in RANKS
    ]


def shuffled_deck(seed: str) -> list[str]:
    return permute(standard_deck(), seed)


def shuffled_shoe(seed: str, decks: int = SHOE_DECKS) -> list[str]:
    return permute(shoe(decks), seed)


def split_card(card: str) -> tuple[str, str]:
    """``"10♥"`` -> ``("10", "♥")``; shoe ids ``"10H-3"`` -> ``("10", "H")``."""
    face = card.split("-", 1)[0]
    if len(face) < 2:
        raise ValueError(f"malformed card {card!r}")
    rank, suit = face[:-1], face[-1]
    if rank not in RANKS:
        raise ValueError(f"unknown rank in card {card!r}")
    return rank, suit


def rank_of(card: str) -> str:
    return split_card(card)[0]


def rank_value(rank: str) -> int:
    return RANKS.index(rank) + 1


def is_red(card: str) -> bool:
    return split_card(card)[1] in RED_SUITS
