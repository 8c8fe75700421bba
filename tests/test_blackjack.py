from __future__ import annotations

import pytest

from fairplay.contracts import ErrorKind, Ok
from fairplay.core import IllegalAction
from fairplay.games.blackjack import (
    STARTING_BALANCE,
    BlackjackTable,
    Outcome,
    cut_position,
    dealer_should_hit,
    hand_value,
    insurance_return,
    settle,
    settle_round,
)
from fairplay.validation import BlackjackReplayer, ReplayValidator
from fairplay.validation.blackjack import deal_order
from tests.helpers import BLOCK, started


def test_plain_win_pays_double_the_bet():
    settlement = settle_round(1000, [100], [["10♠", "9♥"]], [False], ["10♦", "8♣"])
    assert settlement.outcomes == [Outcome.WIN]
    assert settlement.total_payout == 200
    assert settlement.profit == 100
    assert settlement.balance_after == 1100


def test_split_hands_settle_independently():
    settlement = settle_round(
        1000,
        [100, 100],
        [["10♠", "9♥"], ["10♣", "5♦", "K♥"]],
        [True, True],
        ["10♦", "8♣"],
    )
    assert settlement.outcomes == [Outcome.WIN, Outcome.LOSS]
    assert settlement.total_payout == 200
    assert settlement.profit == 0


def test_natural_pays_three_to_two_but_not_after_a_split():
    assert settle(["A♠", "K♥"], ["10♦", "8♣"]) is Outcome.BLACKJACK
    assert settle(["A♠", "K♥"], ["10♦", "8♣"], split=True) is Outcome.WIN
    assert settle_round(1000, [100], [["A♠", "K♥"]], [False], ["10♦", "8♣"]).total_payout == 250
    assert settle(["A♠", "K♥"], ["A♦", "Q♣"]) is Outcome.PUSH


def test_settlement_order_player_bust_loses_even_if_dealer_busts():
    assert settle(["10♠", "9♥", "5♣"], ["10♦", "6♣", "9♠"]) is Outcome.LOSS


def test_aces_soften_and_dealer_stands_on_soft_seventeen():
    assert hand_value(["A♠", "A♥", "9♣"]) == 21
    assert hand_value(["A♠", "6♥"]) == 17
    assert not dealer_should_hit(["A♠", "6♥"])
    assert dealer_should_hit(["10♠", "6♥"])


def test_insurance_pays_only_against_dealer_blackjack():
    assert insurance_return(50, ["A♦", "K♣"]) == 150
    assert insurance_return(50, ["A♦", "7♣"]) == 0


def test_bets_beyond_balance_are_illegal():
    with pytest.raises(IllegalAction):
        settle_round(150, [100, 100], [["8♠", "9♥"], ["8♣", "9♦"]], [True, True], ["10♦", "8♣"])


def test_cut_card_sits_at_three_quarters_of_the_shoe():
    assert cut_position(312) == 234


@pytest.fixture
def played_table():
    protocol, session_id = started()
    table = BlackjackTable(protocol, session_id, BLOCK.height)
    for i in range(40):
        table.play_round(10, split_pairs=True, take_insurance=i % 2 == 0)
    return table, table.submission(protocol.end_session(session_id))


def test_table_session_replays_to_its_balance(played_table):
    table, submission = played_table
    assert table.shuffles >= 1
    result = ReplayValidator([BlackjackReplayer()]).validate(submission)
    assert isinstance(result, Ok)
    assert result.value.calculated_score == table.balance
    assert result.value.details["rounds"] == 40


def test_substituted_card_is_illegal(played_table):
    _, submission = played_table
    first = submission.action_history[0]
    dealer = first["dealer_hand"]
    dealer[0] = "2S-9" if dealer[0] != "2S-9" else "3S-9"
    result = ReplayValidator([BlackjackReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION


def test_inflated_balance_is_rejected(played_table):
    table, submission = played_table
    submission.claimed_score = table.balance + STARTING_BALANCE
    result = ReplayValidator([BlackjackReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION


def test_deal_order_interleaves_player_and_dealer_then_split_cards():
    hands = [["8S-1", "3H-1", "KD-1"], ["8C-1", "2D-1"]]
    dealer = ["10H-1", "6S-1", "5C-1"]
    assert deal_order(hands, dealer) == ["8S-1", "10H-1", "8C-1", "6S-1", "3H-1", "2D-1", "KD-1", "5C-1"]
    assert deal_order([["9S-1", "7H-1"]], ["AD-1", "4C-1", "2S-1"]) == ["9S-1", "AD-1", "7H-1", "4C-1", "2S-1"]


def test_swapping_a_player_card_with_a_dealer_card_is_illegal(played_table):
    _, submission = played_table
    for rnd in submission.action_history:
        player = rnd["player_hands"][0]["cards"]
        dealer = rnd["dealer_hand"]
        if player[0] != dealer[0]:
            player[0], dealer[0] = dealer[0], player[0]
            break
    result = ReplayValidator([BlackjackReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION
    assert "recorded as" in result.detail
