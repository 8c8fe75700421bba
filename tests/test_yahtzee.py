from __future__ import annotations

import pytest

from fairplay.contracts import ErrorKind, Ok
from fairplay.core import IllegalAction
from fairplay.games.yahtzee import Category, Scorecard, YahtzeeGame, apply_roll, category_score
from fairplay.validation import ReplayValidator, YahtzeeReplayer
from tests.helpers import BLOCK, started


@pytest.mark.parametrize(
    ("category", "dice", "expected"),
    [
        (Category.THREES, [3, 3, 1, 3, 6], 9),
        (Category.THREE_OF_A_KIND, [4, 4, 4, 2, 1], 15),
        (Category.FOUR_OF_A_KIND, [4, 4, 4, 2, 1], 0),
        (Category.FULL_HOUSE, [2, 2, 3, 3, 3], 25),
        (Category.SMALL_STRAIGHT, [1, 2, 3, 4, 6], 30),
        (Category.LARGE_STRAIGHT, [2, 3, 4, 5, 6], 40),
        (Category.LARGE_STRAIGHT, [1, 2, 3, 4, 6], 0),
        (Category.YAHTZEE, [5, 5, 5, 5, 5], 50),
        (Category.CHANCE, [1, 2, 3, 4, 6], 16),
    ],
)
def test_category_scores(category, dice, expected):
    assert category_score(category, dice) == expected


def test_upper_bonus_at_sixty_three():
    card = Scorecard()
    for face, category in enumerate([Category.ONES, Category.TWOS, Category.THREES, Category.FOURS, Category.FIVES, Category.SIXES], start=1):
        card.record(category, [face, face, face, 1 if face != 1 else 2, 2 if face != 2 else 3])
    assert card.upper_total == 63
    assert card.upper_bonus == 35


def test_extra_yahtzee_earns_a_bonus_once_the_box_holds_fifty():
    card = Scorecard()
    card.record(Category.YAHTZEE, [6] * 5)
    card.record(Category.SIXES, [6] * 5)
    assert card.yahtzee_bonus_count == 1
    assert card.grand_total == 50 + 30 + 100


def test_category_cannot_be_scored_twice():
    card = Scorecard()
    card.record(Category.CHANCE, [1, 2, 3, 4, 5])
    with pytest.raises(IllegalAction):
        card.record(Category.CHANCE, [6, 6, 6, 6, 6])


def test_holding_before_first_roll_is_illegal():
    with pytest.raises(IllegalAction):
        apply_roll(None, [True, False, False, False, False], [1, 2, 3, 4, 5])
    assert apply_roll([1, 2, 3, 4, 5], [True, False, True, False, False], [6, 6, 6, 6, 6]) == [1, 6, 3, 6, 6]


@pytest.fixture
def finished_game():
    protocol, session_id = started()
    game = YahtzeeGame(protocol, session_id, BLOCK.height)
    total = game.play_to_end()
    return game, total, game.submission(protocol.end_session(session_id))


def test_full_game_replays_to_its_total(finished_game):
    game, total, submission = finished_game
    assert len(submission.action_history) == 13
    result = ReplayValidator([YahtzeeReplayer()]).validate(submission)
    assert isinstance(result, Ok)
    assert result.value.calculated_score == total == game.card.grand_total


def test_incomplete_game_is_structural(finished_game):
    _, _, submission = finished_game
    submission.action_history = submission.action_history[:12]
    result = ReplayValidator([YahtzeeReplayer()]).validate(submission)
    assert result.kind is ErrorKind.STRUCTURAL_ERROR


def test_edited_dice_are_illegal(finished_game):
    _, _, submission = finished_game
    roll = submission.action_history[0]["rolls"][0]
    roll["dice"] = [d % 6 + 1 for d in roll["dice"]]
    result = ReplayValidator([YahtzeeReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION


def test_tampered_scorecard_is_illegal(finished_game):
    _, _, submission = finished_game
    card = submission.claimed_final_state["scorecard"]
    card["chance"] = (card["chance"] or 0) + 1
    result = ReplayValidator([YahtzeeReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION
