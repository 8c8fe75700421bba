"""Klondike solitaire, draw one.

The table is a plain state machine. ``apply`` takes one recorded action and
raises ``IllegalAction`` when it breaks the rules, so the same class serves
the seeded game and the replay validator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from fairplay.contracts import DrawKind, GameType, RandomDraw, Reveal, Submission
from fairplay.core import IllegalAction, make_game_id
from fairplay.fairness.cards import SUITS, is_red, rank_of, rank_value, split_card, standard_deck
from fairplay.fairness.expander import permute
from fairplay.fairness.seeds import SeedProtocol

COLUMNS = 7
DECK_LABEL = "deck-shuffle"
MAX_SCORE = 52
MIN_SECONDS_PER_MOVE = 0.3
PERFECT_MIN_MOVES, PERFECT_MAX_MOVES = 52, 500
PERFECT_MIN_SECONDS = 30

ACTIONS = (
    "draw",
    "recycle",
    "flip",
    "waste_to_tableau",
    "waste_to_foundation",
    "tableau_to_foundation",
    "tableau_to_tableau",
    "foundation_to_tableau",
)


@dataclass(slots=True)
class TableauCard:
    card: str
    face_up: bool = False


def suit_of(card: str) -> str:
    return split_card(card)[1]


def fits_tableau(card: str, column: Sequence[TableauCard]) -> bool:
    if not column:
        return rank_of(card) == "K"
    top = column[-1]
    return top.face_up and is_red(card) != is_red(top.card) and rank_value(rank_of(card)) == rank_value(rank_of(top.card)) - 1


def fits_foundation(card: str, pile: Sequence[str]) -> bool:
    if not pile:
        return rank_of(card) == "A"
    return suit_of(card) == suit_of(pile[-1]) and rank_value(rank_of(card)) == rank_value(rank_of(pile[-1])) + 1


def is_run(cards: Sequence[TableauCard]) -> bool:
    if not all(c.face_up for c in cards):
        return False
    return all(fits_tableau(lower.card, [upper]) for upper, lower in zip(cards, cards[1:]))


class KlondikeTable:
    def __init__(self, deck: Sequence[str]) -> None:
        cards = list(deck)
        if len(cards) != MAX_SCORE:
            raise IllegalAction(f"klondike needs a {MAX_SCORE}-card deck")
        self.tableau: list[list[TableauCard]] = []
        cursor = 0
        for col in range(COLUMNS):
            dealt = cards[cursor : cursor + col + 1]
            cursor += col + 1
            column = [TableauCard(card) for card in dealt]
            column[-1].face_up = True
            self.tableau.append(column)
        self.stock = cards[cursor:]
        self.waste: list[str] = []
        self.foundations: dict[str, list[str]] = {suit: [] for suit in SUITS}
        self.moves = 0

    @property
    def score(self) -> int:
        return sum(len(pile) for pile in self.foundations.values())

    @property
    def won(self) -> bool:
        return self.score == MAX_SCORE

    def _column(self, index: Any) -> list[TableauCard]:
        if not isinstance(index, int) or not 0 <= index < COLUMNS:
            raise IllegalAction(f"no tableau column {index!r}")
        return self.tableau[index]

    def _to_foundation(self, card: str) -> None:
        pile = self.foundations[suit_of(card)]
        if not fits_foundation(card, pile):
            raise IllegalAction(f"{card} cannot go to the foundation")
        pile.append(card)

    def apply(self, action: dict[str, Any]) -> None:
        kind = action.get("type")
        if kind == "draw":
            if not self.stock:
                raise IllegalAction("stock is empty")
            self.waste.append(self.stock.pop())
        elif kind == "recycle":
            if self.stock or not self.waste:
                raise IllegalAction("recycle needs an empty stock and a non-empty waste")
            self.stock = list(reversed(self.waste))
            self.waste = []
        elif kind == "flip":
            column = self._column(action.get("column"))
            if not column or column[-1].face_up:
                raise IllegalAction("nothing to flip")
            column[-1].face_up = True
        elif kind == "waste_to_tableau":
            if not self.waste:
                raise IllegalAction("waste is empty")
            column = self._column(action.get("column"))
            if not fits_tableau(self.waste[-1], column):
                raise IllegalAction(f"{self.waste[-1]} cannot go on column {action.get('column')}")
            column.append(TableauCard(self.waste.pop(), True))
        elif kind == "waste_to_foundation":
            if not self.waste:
                raise IllegalAction("waste is empty")
            self._to_foundation(self.waste[-1])
            self.waste.pop()
        elif kind == "tableau_to_foundation":
            column = self._column(action.get("column"))
            if not column or not column[-1].face_up:
                raise IllegalAction("no face-up card to move")
            self._to_foundation(column[-1].card)
            column.pop()
        elif kind == "tableau_to_tableau":
            source = self._column(action.get("from"))
            target = self._column(action.get("to"))
            start = action.get("start")
            if source is target or not isinstance(start, int) or not 0 <= start < len(source):
                raise IllegalAction("invalid tableau move")
            run = source[start:]
            if not is_run(run) or not fits_tableau(run[0].card, target):
                raise IllegalAction(f"run from {run[0].card} cannot move to column {action.get('to')}")
            del source[start:]
            target.extend(run)
        elif kind == "foundation_to_tableau":
            suit = action.get("suit")
            pile = self.foundations.get(suit)
            if not pile:
                raise IllegalAction(f"foundation {suit!r} is empty")
            column = self._column(action.get("column"))
            if not fits_tableau(pile[-1], column):
                raise IllegalAction(f"{pile[-1]} cannot go on column {action.get('column')}")
            column.append(TableauCard(pile.pop(), True))
        else:
            raise IllegalAction(f"unknown solitaire action {kind!r}")
        self.moves += 1

    def next_move(self) -> dict[str, Any] | None:
        """Greedy choice that never undoes progress. ``draw``/``recycle`` are left to the caller."""
        for i, column in enumerate(self.tableau):
            if column and not column[-1].face_up:
                return {"type": "flip", "column": i}
        if self.waste and fits_foundation(self.waste[-1], self.foundations[suit_of(self.waste[-1])]):
            return {"type": "waste_to_foundation"}
        for i, column in enumerate(self.tableau):
            if column and fits_foundation(column[-1].card, self.foundations[suit_of(column[-1].card)]):
                return {"type": "tableau_to_foundation", "column": i}
        for i, column in enumerate(self.tableau):
            start = next((k for k, c in enumerate(column) if c.face_up), None)
            if start is None or start == 0:
                continue
            for j, target in enumerate(self.tableau):
                if j != i and fits_tableau(column[start].card, target):
                    return {"type": "tableau_to_tableau", "from": i, "start": start, "to": j}
        if self.waste:
            for j, target in enumerate(self.tableau):
                if fits_tableau(self.waste[-1], target):
                    return {"type": "waste_to_tableau", "column": j}
        return None


class SolitaireGame:
    def __init__(self, protocol: SeedProtocol, session_id: str, block_height: int) -> None:
        self.protocol = protocol
        self.session_id = session_id
        self.game_id = make_game_id("SOL", block_height)
        drawn = protocol.derive_record(session_id, DECK_LABEL)
        seed = drawn.seed
        deck = permute(standard_deck(), seed)
        self.random_history = [RandomDraw(DECK_LABEL, DrawKind.PERMUTATION, tuple(deck), seed, drawn.block)]
        self.table = KlondikeTable(deck)
        self.action_history: list[dict[str, Any]] = []

    def apply(self, action: dict[str, Any]) -> None:
        self.table.apply(action)
        self.action_history.append(action)

    def autoplay(self, max_passes: int = 3, max_moves: int = 1000) -> int:
        """Plays greedily until stuck; gives up after ``max_passes`` stock passes without progress."""
        idle_passes = 0
        last_progress: tuple[int, int] | None = None
        while not self.table.won and len(self.action_history) < max_moves:
            move = self.table.next_move()
            if move is not None:
                self.apply(move)
                continue
            if self.table.stock:
                self.apply({"type": "draw"})
                continue
            if not self.table.waste:
                break
            progress = (self.table.score, sum(len(c) for c in self.table.tableau))
            idle_passes = idle_passes + 1 if progress == last_progress else 0
            if idle_passes >= max_passes:
                break
            last_progress = progress
            self.apply({"type": "recycle"})
        return self.table.score

    def submission(self, reveal: Reveal, time_seconds: float) -> Submission:
        return Submission(
            game_type=GameType.SOLITAIRE,
            game_id=self.game_id,
            action_history=list(self.action_history),
            random_history=list(self.random_history),
            claimed_score=self.table.score,
            claimed_final_state={"foundations": {s: len(p) for s, p in self.table.foundations.items()}},
            secret=reveal.secret,
            secret_hash=reveal.secret_hash,
            block=reveal.block,
            metadata={"time_seconds": time_seconds, "moves": len(self.action_history)},
        )
