from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Any, Callable, Sequence

from fairplay.contracts import DrawKind, GameType, RandomDraw, Reveal, Submission
from fairplay.core import IllegalAction, make_game_id
from fairplay.fairness.expander import independent_dice
from fairplay.fairness.seeds import SeedProtocol

DICE_COUNT = 5
TURNS = 13
MAX_ROLLS = 3
UPPER_BONUS_THRESHOLD = 63
UPPER_BONUS = 35
YAHTZEE_BONUS = 100


class Category(str, Enum):
    ONES = "ones"
    TWOS = "twos"
    THREES = "threes"
    FOURS = "fours"
    FIVES = "fives"
    SIXES = "sixes"
    THREE_OF_A_KIND = "threeOfAKind"
    FOUR_OF_A_KIND = "fourOfAKind"
    FULL_HOUSE = "fullHouse"
    SMALL_STRAIGHT = "smallStraight"
    LARGE_STRAIGHT = "largeStraight"
    YAHTZEE = "yahtzee"
    CHANCE = "chance"


UPPER = {
    Category.ONES: 1,
    Category.TWOS: 2,
    Category.THREES: 3,
    Category.FOURS: 4,
    Category.FIVES: 5,
    Category.SIXES: 6,
}


def roll_label(turn: int, roll: int) -> str:
    return f"turn-{turn}-roll-{roll}"


def _has_run(dice: Sequence[int], length: int) -> bool:
    faces = set(dice)
    return any(all(start + k in faces for k in range(length)) for start in range(1, 8 - length))


def category_score(category: Category, dice: Sequence[int]) -> int:
    counts = Counter(dice)
    if category in UPPER:
        face = UPPER[category]
        return face * counts[face]
    top = max(counts.values())
    if category is Category.THREE_OF_A_KIND:
        return sum(dice) if top >= 3 else 0
    if category is Category.FOUR_OF_A_KIND:
        return sum(dice) if top >= 4 else 0
    if category is Category.FULL_HOUSE:
        return 25 if sorted(counts.values()) == [2, 3] else 0
    if category is Category.SMALL_STRAIGHT:
        return 30 if _has_run(dice, 4) else 0
    if category is Category.LARGE_STRAIGHT:
        return 40 if _has_run(dice, 5) else 0
    if category is Category.YAHTZEE:
        return 50 if top == DICE_COUNT else 0
    return sum(dice)


class Scorecard:
    def __init__(self) -> None:
        self.boxes: dict[Category, int] = {}
        self.yahtzee_bonus_count = 0

    def can_score(self, category: Category) -> bool:
        return category not in self.boxes

    @property
    def complete(self) -> bool:
        return len(self.boxes) == len(Category)

    def record(self, category: Category, dice: Sequence[int]) -> int:
        if not self.can_score(category):
            raise IllegalAction(f"category {category.value} already scored")
        if Counter(dice).most_common(1)[0][1] == DICE_COUNT and self.boxes.get(Category.YAHTZEE) == 50:
            self.yahtzee_bonus_count += 1
        value = category_score(category, dice)
        self.boxes[category] = value
        return value

    @property
    def upper_total(self) -> int:
        return sum(v for c, v in self.boxes.items() if c in UPPER)

    @property
    def upper_bonus(self) -> int:
        return UPPER_BONUS if self.upper_total >= UPPER_BONUS_THRESHOLD else 0

    @property
    def lower_total(self) -> int:
        return sum(v for c, v in self.boxes.items() if c not in UPPER)

    @property
    def grand_total(self) -> int:
        return self.upper_total + self.upper_bonus + self.lower_total + self.yahtzee_bonus_count * YAHTZEE_BONUS

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {c.value: self.boxes.get(c) for c in Category}
        payload["yahtzeeBonusCount"] = self.yahtzee_bonus_count
        return payload


def apply_roll(current: Sequence[int] | None, held: Sequence[bool], fresh: Sequence[int]) -> list[int]:
    """Held positions keep their value; every other position takes the fresh die at that index."""
    if current is None:
        if any(held):
            raise IllegalAction("dice cannot be held before the first roll")
        return list(fresh)
    return [old if keep else new for old, keep, new in zip(current, held, fresh)]


# (dice, rolls_used, scorecard) -> (held, category or None to keep rolling)
YahtzeePolicy = Callable[[list[int], int, Scorecard], tuple[list[bool], Category | None]]


def greedy_policy(dice: list[int], rolls_used: int, card: Scorecard) -> tuple[list[bool], Category | None]:
    """Holds the most common face; scores the best open box on the last roll or on a Yahtzee."""
    open_boxes = [c for c in Category if card.can_score(c)]
    best = max(open_boxes, key=lambda c: (category_score(c, dice), -list(Category).index(c)))
    face, count = Counter(dice).most_common(1)[0]
    if rolls_used == MAX_ROLLS or count == DICE_COUNT:
        return [False] * DICE_COUNT, best
    return [d == face for d in dice], None


class YahtzeeGame:
    def __init__(self, protocol: SeedProtocol, session_id: str, block_height: int) -> None:
        self.protocol = protocol
        self.session_id = session_id
        self.game_id = make_game_id("YAH", block_height)
        self.card = Scorecard()
        self.action_history: list[dict[str, Any]] = []
        self.random_history: list[RandomDraw] = []

    def _roll(self, turn: int, roll: int) -> list[int]:
        label = roll_label(turn, roll)
        drawn = self.protocol.derive_record(self.session_id, label)
        seed = drawn.seed
        dice = independent_dice(seed, DICE_COUNT)
        self.random_history.append(RandomDraw(label, DrawKind.DICE, tuple(dice), seed, drawn.block))
        return dice

    def play_turn(self, policy: YahtzeePolicy = greedy_policy) -> int:
        turn = len(self.action_history) + 1
        if turn > TURNS:
            raise IllegalAction("all turns have been played")
        dice: list[int] | None = None
        held = [False] * DICE_COUNT
        rolls: list[dict[str, Any]] = []
        category: Category | None = None
        for roll in range(1, MAX_ROLLS + 1):
            dice = apply_roll(dice, held, self._roll(turn, roll))
            rolls.append({"held": list(held), "dice": list(dice)})
            held, category = policy(list(dice), roll, self.card)
            if category is not None:
                break
        if category is None:
            raise IllegalAction(f"turn {turn} ended without choosing a category")
        value = self.card.record(category, dice)
        self.action_history.append({"turn": turn, "rolls": rolls, "category": category.value})
        return value

    def play_to_end(self, policy: YahtzeePolicy = greedy_policy) -> int:
        while not self.card.complete:
            self.play_turn(policy)
        return self.card.grand_total

    def submission(self, reveal: Reveal) -> Submission:
        return Submission(
            game_type=GameType.YAHTZEE,
            game_id=self.game_id,
            action_history=list(self.action_history),
            random_history=list(self.random_history),
            claimed_score=self.card.grand_total,
            claimed_final_state={"scorecard": self.card.to_dict()},
            secret=reveal.secret,
            secret_hash=reveal.secret_hash,
            block=reveal.block,
        )
