from __future__ import annotations

import threading
from itertools import combinations_with_replacement

import pytest

from fairplay.backgammon import BoardState, FirstLegalOracle, MoveLegalityEngine, OracleGate, single_moves
from fairplay.contracts import BAR, OFF, Move, Player
from fairplay.core import IllegalAction

W = Player.WHITE
B = Player.BLACK


@pytest.fixture
def engine() -> MoveLegalityEngine:
    return MoveLegalityEngine()


def scenario_a() -> BoardState:
    return BoardState.from_layout({23: 1}, {18: 2, 20: 1, 0: 12})


def test_lone_checker_against_a_block_must_hit_with_the_three(engine):
    assert engine.legal_moves(scenario_a(), [5, 3], W) == [Move(23, 20, 3, W)]


def test_validate_turn_requires_every_playable_die(engine):
    board = scenario_a()
    with pytest.raises(IllegalAction):
        engine.validate_turn(board, (5, 3), W, [Move(23, 20, 3, W)])

    after = engine.validate_turn(board, (5, 3), W, [Move(23, 20, 3, W), Move(20, 15, 5, W)])
    assert after.count(15, W) == 1
    assert after.bar(B) == 1


def test_validate_turn_rejects_move_outside_legal_set(engine):
    with pytest.raises(IllegalAction):
        engine.validate_turn(scenario_a(), (5, 3), W, [Move(23, 18, 5, W)])


def test_only_the_larger_die_when_both_cannot_be_played(engine):
    board = BoardState.from_layout({10: 1}, {5: 2, 0: 13})
    assert engine.legal_moves(board, [4, 1], W) == [Move(10, 6, 4, W)]


def test_smaller_die_allowed_when_larger_is_unplayable(engine):
    board = BoardState.from_layout({10: 1}, {6: 2, 5: 2, 0: 11})
    assert engine.legal_moves(board, [4, 1], W) == [Move(10, 9, 1, W)]


def test_empty_legal_set_is_a_forced_pass(engine):
    board = BoardState.from_layout({}, {18: 2, 19: 2, 20: 2, 21: 2, 22: 2, 23: 2, 0: 3}, white_bar=1)
    board = BoardState(board.points, white_bar=1, white_off=14)
    assert engine.legal_moves(board, [3, 5], W) == []
    assert engine.validate_turn(board, (3, 5), W, []) == board


def test_bar_checker_must_enter_first(engine):
    board = BoardState.from_layout({12: 14}, {0: 15}, white_bar=1)
    legal = engine.legal_moves(board, [6, 2], W)
    assert legal
    assert all(m.from_point == BAR for m in legal)


@pytest.mark.parametrize("dice", [pair for pair in combinations_with_replacement(range(1, 7), 2) if pair[0] != pair[1]])
def test_every_returned_move_keeps_the_other_die_playable(engine, dice):
    board = BoardState.initial()
    d1, d2 = dice
    for move in engine.legal_moves(board, [d1, d2], W):
        other = d2 if move.die_value == d1 else d1
        assert single_moves(board.apply(move), W, other)


@pytest.mark.parametrize("die", range(1, 7))
def test_doubles_first_moves_preserve_the_maximum(engine, die):
    board = BoardState.initial()
    best = engine.max_playable(board, [die] * 4, B)
    for move in engine.legal_moves(board, [die] * 4, B):
        assert 1 + engine.max_playable(board.apply(move), [die] * 3, B) == best


def test_bearing_off_with_a_larger_die_only_from_the_highest_point(engine):
    board = BoardState.from_layout({2: 1, 0: 1}, {23: 15}, white_off=13)
    legal = engine.legal_moves(board, [6, 5], W)
    assert Move(2, OFF, 6, W) in legal
    assert Move(0, OFF, 6, W) not in legal


def test_oracle_gate_rejects_moves_outside_the_legal_set():
    board = scenario_a()

    class Cheater:
        def choose_move(self, board, legal_moves, player):
            return Move(23, 18, 5, W)

    gate = OracleGate()
    legal = MoveLegalityEngine().legal_moves(board, [5, 3], W)
    assert gate.choose(FirstLegalOracle(), board, legal, W) == legal[0]
    with pytest.raises(IllegalAction):
        gate.choose(Cheater(), board, legal, W)
    with pytest.raises(IllegalAction):
        gate.choose(None, board, legal, W)


def test_oracle_gate_rejects_a_slow_oracle():
    board = scenario_a()
    legal = MoveLegalityEngine().legal_moves(board, [5, 3], W)
    release = threading.Event()

    class Stalling:
        def choose_move(self, board, legal_moves, player):
            release.wait(5)
            return legal_moves[0]

    try:
        with pytest.raises(IllegalAction, match="exceeded"):
            OracleGate(timeout_seconds=0.01).choose(Stalling(), board, legal, W)
    finally:
        release.set()
    assert OracleGate(timeout_seconds=5).choose(FirstLegalOracle(), board, legal, W) == legal[0]


def test_opening_position_pip_counts_and_single_move_check(engine):
    board = BoardState.initial()
    assert board.pip_count(W) == 167
    assert board.pip_count(B) == 167
    assert engine.is_legal(board, (6, 1), Move(12, 6, 6, W))
    assert not engine.is_legal(board, (6, 1), Move(12, 7, 5, W))
