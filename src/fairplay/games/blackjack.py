from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from fairplay.contracts import DrawKind, GameType, RandomDraw, Reveal, Submission
from fairplay.core import IllegalAction, make_game_id
from fairplay.fairness.cards import rank_of, shoe
from fairplay.fairness.expander import permute
from fairplay.fairness.seeds import SeedProtocol

STARTING_BALANCE = 1000
MIN_BET = 5
MAX_HANDS = 2
CUT_FRACTION = 0.75
DEALER_STANDS_AT = 17
INSURANCE_RETURN = 3


def cut_position(shoe_size: int) -> int:
    return int(shoe_size * CUT_FRACTION)


def shoe_label(index: int) -> str:
    return f"shoe-{index}"


class Outcome(str, Enum):
    BLACKJACK = "blackjack"
    WIN = "win"
    PUSH = "push"
    LOSS = "loss"


PAYOUT_MULTIPLIER = {
    Outcome.BLACKJACK: 2.5,
    Outcome.WIN: 2,
    Outcome.PUSH: 1,
    Outcome.LOSS: 0,
}


def chips(amount: float) -> int | float:
    return int(amount) if float(amount).is_integer() else amount


def card_points(card: str) -> int:
    rank = rank_of(card)
    if rank == "A":
        return 11
    if rank in {"J", "Q", "K"}:
        return 10
    return int(rank)


def hand_value(cards: Sequence[str]) -> int:
    total = sum(card_points(c) for c in cards)
    aces = sum(1 for c in cards if rank_of(c) == "A")
    while total > 21 and aces:
        total -= 10
        aces -= 1
    return total


def is_bust(cards: Sequence[str]) -> bool:
    return hand_value(cards) > 21


def is_blackjack(cards: Sequence[str], split: bool = False) -> bool:
    return not split and len(cards) == 2 and hand_value(cards) == 21


def dealer_should_hit(cards: Sequence[str]) -> bool:
    """Dealer stands on all 17s, soft included."""
    return hand_value(cards) < DEALER_STANDS_AT


def settle(player_cards: Sequence[str], dealer_cards: Sequence[str], split: bool = False) -> Outcome:
    if is_bust(player_cards):
        return Outcome.LOSS
    if is_bust(dealer_cards):
        return Outcome.WIN
    player_bj = is_blackjack(player_cards, split)
    dealer_bj = is_blackjack(dealer_cards)
    if player_bj and dealer_bj:
        return Outcome.PUSH
    if player_bj:
        return Outcome.BLACKJACK
    if dealer_bj:
        return Outcome.LOSS
    player_total = hand_value(player_cards)
    dealer_total = hand_value(dealer_cards)
    if player_total > dealer_total:
        return Outcome.WIN
    if player_total < dealer_total:
        return Outcome.LOSS
    return Outcome.PUSH


def payout(bet: float, outcome: Outcome) -> int | float:
    return chips(bet * PAYOUT_MULTIPLIER[outcome])


def insurance_return(insurance_bet: float, dealer_cards: Sequence[str]) -> int | float:
    return chips(insurance_bet * INSURANCE_RETURN) if is_blackjack(dealer_cards) else 0


@dataclass(slots=True)
class RoundSettlement:
    outcomes: list[Outcome]
    total_bet: int | float
    total_payout: int | float
    balance_after: int | float

    @property
    def profit(self) -> int | float:
        return chips(self.total_payout - self.total_bet)


def settle_round(
    balance: float,
    hand_bets: Sequence[float],
    player_hands: Sequence[Sequence[str]],
    split_flags: Sequence[bool],
    dealer_cards: Sequence[str],
    insurance_bet: float = 0,
) -> RoundSettlement:
    """Bets come off the balance first; each hand then settles on its own against the dealer."""
    total_bet = sum(hand_bets) + insurance_bet
    if total_bet > balance:
        raise IllegalAction(f"bets {chips(total_bet)} exceed balance {chips(balance)}")
    outcomes = [settle(cards, dealer_cards, split) for cards, split in zip(player_hands, split_flags)]
    total_payout = sum(payout(bet, o) for bet, o in zip(hand_bets, outcomes))
    total_payout += insurance_return(insurance_bet, dealer_cards)
    return RoundSettlement(
        outcomes=outcomes,
        total_bet=chips(total_bet),
        total_payout=chips(total_payout),
        balance_after=chips(balance - total_bet + total_payout),
    )


@dataclass(slots=True)
class ShoeCursor:
    cards: list[str] = field(default_factory=list)
    position: int = 0

    @property
    def needs_shuffle(self) -> bool:
        return not self.cards or self.position >= cut_position(len(self.cards))

    def take(self, count: int = 1) -> list[str]:
        if self.position + count > len(self.cards):
            raise IllegalAction("shoe exhausted mid-round")
        dealt = self.cards[self.position : self.position + count]
        self.position += count
        return dealt


class BlackjackTable:
    """Seeded blackjack session that records rounds in the submitted shape."""

    def __init__(self, protocol: SeedProtocol, session_id: str, block_height: int) -> None:
        self.protocol = protocol
        self.session_id = session_id
        self.game_id = make_game_id("BJK", block_height)
        self.balance: int | float = STARTING_BALANCE
        self.cursor = ShoeCursor()
        self.shuffles = 0
        self.action_history: list[dict[str, Any]] = []
        self.random_history: list[RandomDraw] = []

    def _shuffle(self) -> None:
        self.shuffles += 1
        label = shoe_label(self.shuffles)
        drawn = self.protocol.derive_record(self.session_id, label)
        seed = drawn.seed
        cards = permute(shoe(), seed)
        self.random_history.append(RandomDraw(label, DrawKind.PERMUTATION, tuple(cards), seed, drawn.block))
        self.cursor = ShoeCursor(cards, 0)

    def play_round(
        self,
        bet: int,
        hit_below: int = DEALER_STANDS_AT,
        split_pairs: bool = False,
        take_insurance: bool = False,
    ) -> RoundSettlement:
        if bet < MIN_BET or bet > self.balance:
            raise IllegalAction(f"bet {bet} outside [{MIN_BET}, {self.balance}]")
        if self.cursor.needs_shuffle:
            self._shuffle()

        p1, d1, p2, d2 = self.cursor.take(4)
        hands = [[p1, p2]]
        dealer = [d1, d2]
        bets: list[int | float] = [bet]
        split_flags = [False]
        committed = bet

        insurance = 0
        if take_insurance and rank_of(d1) == "A":
            insurance = bet // 2
            if committed + insurance > self.balance:
                insurance = 0
            committed += insurance

        if split_pairs and rank_of(p1) == rank_of(p2) and committed + bet <= self.balance:
            c1, c2 = self.cursor.take(2)
            hands = [[p1, c1], [p2, c2]]
            bets = [bet, bet]
            split_flags = [True, True]
            committed += bet

        split_aces = split_flags[0] and rank_of(p1) == "A"
        for hand, split in zip(hands, split_flags):
            if split_aces or is_blackjack(hand, split):
                continue
            while hand_value(hand) < hit_below:
                hand.extend(self.cursor.take())

        if not all(is_bust(h) for h in hands):
            while dealer_should_hit(dealer):
                dealer.extend(self.cursor.take())

        settlement = settle_round(self.balance, bets, hands, split_flags, dealer, insurance)
        self.balance = settlement.balance_after
        self.action_history.append(
            {
                "hand_bets": bets,
                "player_hands": [{"cards": h, "split": s} for h, s in zip(hands, split_flags)],
                "dealer_hand": dealer,
                "insurance_bet": insurance,
            }
        )
        return settlement

    def submission(self, reveal: Reveal) -> Submission:
        return Submission(
            game_type=GameType.BLACKJACK,
            game_id=self.game_id,
            action_history=list(self.action_history),
            random_history=list(self.random_history),
            claimed_score=self.balance,
            secret=reveal.secret,
            secret_hash=reveal.secret_hash,
            block=reveal.block,
            metadata={"initial_balance": STARTING_BALANCE},
        )
