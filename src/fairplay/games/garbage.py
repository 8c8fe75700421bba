from __future__ import annotations

from typing import Any, Sequence

from fairplay.contracts import DrawKind, GameType, RandomDraw, Reveal, Submission
from fairplay.core import IllegalAction, make_game_id
from fairplay.fairness.cards import rank_of, standard_deck
from fairplay.fairness.expander import permute
from fairplay.fairness.seeds import SeedProtocol

SLOTS = 10
PLAYER = "player"
AI = "ai"
SIDES = (PLAYER, AI)
WILD_RANK = "J"
GARBAGE_RANKS = {"Q", "K"}
SLOT_RANKS = {"A": 1, "2": 2, "3": 3, "4": 4, "5": 5, "6": 6, "7": 7, "8": 8, "9": 9, "10": 10}

ROUND_POINTS = 100
WIN_BONUS = 500
FAST_BONUS = 200
FAST_ROUND_SECONDS = 30
MIN_ROUNDS, MAX_ROUNDS = 1, 50
MIN_SECONDS_PER_ROUND, MAX_SECONDS_PER_ROUND = 2, 300


def deck_label(round_number: int) -> str:
    return f"deck-shuffle-{round_number}"


def is_garbage(card: str) -> bool:
    return rank_of(card) in GARBAGE_RANKS


def is_wild(card: str) -> bool:
    return rank_of(card) == WILD_RANK


def valid_positions(card: str, slots: Sequence[str | None]) -> list[int]:
    """1-based positions ``card`` may fill. Jacks fill any open slot; Q and K fill none."""
    if is_garbage(card):
        return []
    if is_wild(card):
        return [i + 1 for i, slot in enumerate(slots) if slot is None]
    position = SLOT_RANKS[rank_of(card)]
    return [position] if slots[position - 1] is None else []


def garbage_score(rounds: int, player_won: bool, time_seconds: float | None) -> int:
    score = rounds * ROUND_POINTS
    if player_won:
        score += WIN_BONUS
    if time_seconds and rounds and time_seconds / rounds < FAST_ROUND_SECONDS:
        score += FAST_BONUS
    return score


class GarbageRound:
    """One dealt round. ``apply`` accepts a single recorded action and enforces turn order."""

    def __init__(self, deck: Sequence[str], first: str = PLAYER) -> None:
        cards = list(deck)
        self.hidden = {PLAYER: cards[0:SLOTS], AI: cards[SLOTS : 2 * SLOTS]}
        self.slots: dict[str, list[str | None]] = {side: [None] * SLOTS for side in SIDES}
        self.draw_pile = cards[2 * SLOTS :]
        self.discard_pile: list[str] = []
        self.current = first
        self.holding: str | None = None
        self.winner: str | None = None
        self.exhausted = False

    @property
    def over(self) -> bool:
        return self.winner is not None or self.exhausted

    def _end_turn(self) -> None:
        self.holding = None
        if not self.draw_pile:
            self.exhausted = True
            return
        self.current = AI if self.current == PLAYER else PLAYER

    def apply(self, action: dict[str, Any]) -> None:
        if self.over:
            raise IllegalAction("round is already over")
        side = action.get("side")
        if side != self.current:
            raise IllegalAction(f"it is {self.current}'s turn, not {side}'s")
        kind = action.get("type")

        if kind == "draw":
            if self.holding is not None:
                raise IllegalAction("already holding a card")
            if not self.draw_pile:
                raise IllegalAction("draw pile is empty")
            self.holding = self.draw_pile.pop(0)
        elif kind == "take_discard":
            if self.holding is not None:
                raise IllegalAction("already holding a card")
            if not self.discard_pile:
                raise IllegalAction("discard pile is empty")
            self.holding = self.discard_pile.pop()
        elif kind == "place":
            if self.holding is None:
                raise IllegalAction("no card in hand to place")
            position = action.get("position")
            if position not in valid_positions(self.holding, self.slots[side]):
                raise IllegalAction(f"{self.holding} cannot fill slot {position}")
            self.slots[side][position - 1] = self.holding
            self.holding = self.hidden[side][position - 1]
            if all(self.slots[side]):
                self.winner = side
                self.holding = None
        elif kind == "discard":
            if self.holding is None:
                raise IllegalAction("no card in hand to discard")
            if valid_positions(self.holding, self.slots[side]):
                raise IllegalAction(f"{self.holding} has an open slot and must be placed")
            self.discard_pile.append(self.holding)
            self._end_turn()
        else:
            raise IllegalAction(f"unknown garbage action {kind!r}")

    def choose(self) -> dict[str, Any]:
        """Simple deterministic play: take a useful discard, else draw, place while possible."""
        side = self.current
        if self.holding is None:
            if self.discard_pile and valid_positions(self.discard_pile[-1], self.slots[side]):
                return {"side": side, "type": "take_discard"}
            return {"side": side, "type": "draw"}
        positions = valid_positions(self.holding, self.slots[side])
        if positions:
            return {"side": side, "type": "place", "position": positions[0]}
        return {"side": side, "type": "discard"}


class GarbageGame:
    def __init__(self, protocol: SeedProtocol, session_id: str, block_height: int) -> None:
        self.protocol = protocol
        self.session_id = session_id
        self.game_id = make_game_id("GRB", block_height)
        self.action_history: list[dict[str, Any]] = []
        self.random_history: list[RandomDraw] = []
        self.last_winner: str | None = None

    def play_round(self, seconds: float, max_actions: int = 2000) -> GarbageRound:
        number = len(self.action_history) + 1
        if number > MAX_ROUNDS:
            raise IllegalAction(f"a game has at most {MAX_ROUNDS} rounds")
        label = deck_label(number)
        drawn = self.protocol.derive_record(self.session_id, label)
        seed = drawn.seed
        deck = permute(standard_deck(), seed)
        self.random_history.append(RandomDraw(label, DrawKind.PERMUTATION, tuple(deck), seed, drawn.block))

        game_round = GarbageRound(deck)
        actions: list[dict[str, Any]] = []
        while not game_round.over:
            if len(actions) >= max_actions:
                raise IllegalAction(f"round {number} did not finish within {max_actions} actions")
            action = game_round.choose()
            game_round.apply(action)
            actions.append(action)
        self.last_winner = game_round.winner
        self.action_history.append({"round": number, "seconds": seconds, "actions": actions})
        return game_round

    @property
    def time_seconds(self) -> float:
        return sum(entry["seconds"] for entry in self.action_history)

    def score(self) -> int:
        return garbage_score(len(self.action_history), self.last_winner == PLAYER, self.time_seconds)

    def submission(self, reveal: Reveal) -> Submission:
        return Submission(
            game_type=GameType.GARBAGE,
            game_id=self.game_id,
            action_history=list(self.action_history),
            random_history=list(self.random_history),
            claimed_score=self.score(),
            claimed_final_state={"rounds": len(self.action_history), "player_won": self.last_winner == PLAYER},
            secret=reveal.secret,
            secret_hash=reveal.secret_hash,
            block=reveal.block,
            metadata={"time_seconds": self.time_seconds},
        )
