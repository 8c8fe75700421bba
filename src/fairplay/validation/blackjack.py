from __future__ import annotations

from typing import Any, Sequence

from fairplay.contracts import DrawKind, GameType, ScoreReport, Submission, ValidationIssue
from fairplay.core import IllegalAction
from fairplay.fairness.cards import rank_of, shoe
from fairplay.games.blackjack import (
    DEALER_STANDS_AT,
    MAX_HANDS,
    MIN_BET,
    STARTING_BALANCE,
    ShoeCursor,
    dealer_should_hit,
    hand_value,
    is_bust,
    settle_round,
    shoe_label,
)
from fairplay.validation.replay import DrawCursor, ExactScore
from fairplay.validation.structural import ShapeCheck, is_number


def _card_list(value: Any, minimum: int) -> bool:
    return isinstance(value, list) and len(value) >= minimum and all(isinstance(c, str) for c in value)


def deal_order(hands: Sequence[Sequence[str]], dealer: Sequence[str]) -> list[str]:
    """Cards in the order the table dealt them: p1 d1 p2 d2, split cards, player hits hand by hand, dealer hits."""
    first = hands[0]
    if len(hands) > 1:
        order = [first[0], dealer[0], hands[1][0], dealer[1], first[1], hands[1][1]]
    else:
        order = [first[0], dealer[0], first[1], dealer[1]]
    for hand in hands:
        order.extend(hand[2:])
    order.extend(dealer[2:])
    return order


def _check_player_hand(index: int, hand: int, cards: Sequence[str], split: bool) -> None:
    if split and rank_of(cards[0]) == "A" and len(cards) > 2:
        raise IllegalAction(f"round {index} hand {hand}: split aces take one card only")
    for k in range(2, len(cards)):
        if hand_value(cards[:k]) >= 21:
            raise IllegalAction(f"round {index} hand {hand}: hit taken on {hand_value(cards[:k])}")


def _check_dealer(index: int, dealer: Sequence[str], all_bust: bool) -> None:
    if all_bust:
        if len(dealer) != 2:
            raise IllegalAction(f"round {index}: dealer drew after every player hand busted")
        return
    for k in range(2, len(dealer)):
        if not dealer_should_hit(dealer[:k]):
            raise IllegalAction(f"round {index}: dealer hit on {hand_value(dealer[:k])}")
    if dealer_should_hit(dealer):
        raise IllegalAction(f"round {index}: dealer stood below {DEALER_STANDS_AT}")


class BlackjackReplayer(ExactScore):
    game_type = GameType.BLACKJACK
    needs_secret = True

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        shape.require(bool(submission.action_history), "NO_ROUNDS", "action_history", "at least one round is required")
        for index, rnd in enumerate(submission.action_history):
            path = f"action_history[{index}]"
            if not shape.require(isinstance(rnd, dict), "INVALID_ROUND", path, "round must be an object"):
                continue
            bets = rnd.get("hand_bets")
            hands = rnd.get("player_hands")
            bets_ok = isinstance(bets, list) and 1 <= len(bets) <= MAX_HANDS and all(is_number(b) for b in bets)
            if shape.require(bets_ok, "INVALID_BETS", f"{path}.hand_bets", f"1-{MAX_HANDS} numeric bets required"):
                shape.require(min(bets) >= MIN_BET, "BET_BELOW_MINIMUM", f"{path}.hand_bets", f"minimum bet is {MIN_BET}")
            hands_ok = (
                isinstance(hands, list)
                and all(isinstance(h, dict) and _card_list(h.get("cards"), 2) for h in hands)
                and bets_ok
                and len(hands) == len(bets)
            )
            if shape.require(hands_ok, "INVALID_HANDS", f"{path}.player_hands", "one hand of two or more cards per bet"):
                flags = [bool(h.get("split")) for h in hands]
                shape.require(
                    all(flags) if len(hands) > 1 else not any(flags),
                    "INVALID_SPLIT_FLAGS",
                    f"{path}.player_hands",
                    "hands are split exactly when there is more than one",
                )
            shape.require(_card_list(rnd.get("dealer_hand"), 2), "INVALID_DEALER_HAND", f"{path}.dealer_hand", "dealer needs two or more cards")
            insurance = rnd.get("insurance_bet", 0)
            shape.require(is_number(insurance) and insurance >= 0, "INVALID_INSURANCE", f"{path}.insurance_bet", "insurance must be a non-negative number")
        return shape.issues

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        balance: int | float = STARTING_BALANCE
        cursor = ShoeCursor()
        shuffles = 0
        unshuffled = shoe()
        for index, rnd in enumerate(submission.action_history):
            if cursor.needs_shuffle:
                shuffles += 1
                draw = draws.take(shoe_label(shuffles), DrawKind.PERMUTATION, deck=unshuffled)
                cursor = ShoeCursor(list(draw.output), 0)

            hands = [list(h["cards"]) for h in rnd["player_hands"]]
            split_flags = [bool(h.get("split")) for h in rnd["player_hands"]]
            dealer = list(rnd["dealer_hand"])
            bets = list(rnd["hand_bets"])
            insurance = rnd.get("insurance_bet", 0)

            expected = deal_order(hands, dealer)
            for position, (card, dealt) in enumerate(zip(expected, cursor.take(len(expected)))):
                if card != dealt:
                    raise IllegalAction(f"round {index}: card {position} dealt was {dealt}, recorded as {card}")

            if insurance:
                if rank_of(dealer[0]) != "A":
                    raise IllegalAction(f"round {index}: insurance offered without a dealer ace")
                if insurance > bets[0] // 2:
                    raise IllegalAction(f"round {index}: insurance {insurance} exceeds half the bet")
            for hand_index, (cards, split) in enumerate(zip(hands, split_flags)):
                _check_player_hand(index, hand_index, cards, split)
            _check_dealer(index, dealer, all(is_bust(h) for h in hands))

            settlement = settle_round(balance, bets, hands, split_flags, dealer, insurance)
            balance = settlement.balance_after

        return ScoreReport(
            calculated_score=balance,
            details={"rounds": len(submission.action_history), "shuffles": shuffles},
        )
