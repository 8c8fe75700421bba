from __future__ import annotations

import pytest

from fairplay.contracts import ErrorKind, Ok
from fairplay.core import IllegalAction
from fairplay.fairness.cards import standard_deck
from fairplay.games.garbage import AI, PLAYER, GarbageGame, GarbageRound, garbage_score, valid_positions
from fairplay.validation import GarbageReplayer, ReplayValidator
from tests.helpers import BLOCK, started


def test_slot_rules():
    open_slots = [None] * 10
    assert valid_positions("7♠", open_slots) == [7]
    assert valid_positions("A♥", open_slots) == [1]
    assert valid_positions("J♦", open_slots) == list(range(1, 11))
    assert valid_positions("Q♣", open_slots) == []
    assert valid_positions("K♣", open_slots) == []
    filled = ["x"] * 6 + [None] * 4
    assert valid_positions("7♠", filled) == [7]
    assert valid_positions("3♠", filled) == []


def test_score_formula():
    assert garbage_score(3, True, 60) == 300 + 500 + 200
    assert garbage_score(3, False, 120) == 300


def test_turn_flow_on_an_unshuffled_deck():
    game_round = GarbageRound(standard_deck())
    with pytest.raises(IllegalAction):
        game_round.apply({"side": AI, "type": "draw"})
    game_round.apply({"side": PLAYER, "type": "draw"})
    assert game_round.holding == "8♥"
    with pytest.raises(IllegalAction):
        game_round.apply({"side": PLAYER, "type": "discard"})
    game_round.apply({"side": PLAYER, "type": "place", "position": 8})
    assert game_round.holding == "8♠"
    game_round.apply({"side": PLAYER, "type": "discard"})
    assert game_round.current == AI
    assert game_round.discard_pile == ["8♠"]


@pytest.fixture
def played_game():
    protocol, session_id = started()
    game = GarbageGame(protocol, session_id, BLOCK.height)
    for _ in range(3):
        game.play_round(45)
    return game, game.submission(protocol.end_session(session_id))


def test_game_replays_to_its_score(played_game):
    game, submission = played_game
    result = ReplayValidator([GarbageReplayer()]).validate(submission)
    assert isinstance(result, Ok)
    assert result.value.calculated_score == game.score()
    assert result.value.details["rounds"] == 3


def test_truncated_round_is_illegal(played_game):
    _, submission = played_game
    submission.action_history[0]["actions"] = submission.action_history[0]["actions"][:3]
    result = ReplayValidator([GarbageReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION


def test_implausibly_fast_rounds_are_illegal(played_game):
    _, submission = played_game
    submission.metadata["time_seconds"] = 3
    result = ReplayValidator([GarbageReplayer()]).validate(submission)
    assert result.kind is ErrorKind.ILLEGAL_ACTION
