from __future__ import annotations

import pytest

from fairplay.contracts import ErrorKind, Ok
from fairplay.core import IdSequence, IllegalAction
from fairplay.games.grid2048 import Direction, Game2048, Tile, can_move, place, slide, values
from fairplay.validation import Grid2048Replayer, ReplayValidator
from tests.helpers import BLOCK, started


def grid_of(rows):
    ids = IdSequence()
    return [[Tile(ids.next(), v) if v else None for v in row] for row in rows]


def test_each_tile_merges_at_most_once():
    grid = grid_of([[2, 2, 2, 2], [2, 2, 4, 0], [0, 0, 0, 0], [0, 0, 0, 0]])
    result, gained, moved = slide(grid, Direction.LEFT)
    assert values(result)[0] == [4, 4, 0, 0]
    assert values(result)[1] == [4, 4, 0, 0]
    assert gained == 12
    assert moved


def test_merge_prefers_tiles_nearest_the_wall():
    grid = grid_of([[2, 2, 2, 0], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]])
    result, gained, _ = slide(grid, Direction.RIGHT)
    assert values(result)[0] == [0, 0, 2, 4]
    assert gained == 4


def test_vertical_slides():
    grid = grid_of([[2, 0, 0, 0], [2, 0, 0, 0], [0, 0, 0, 0], [4, 0, 0, 0]])
    up, gained, _ = slide(grid, Direction.UP)
    assert [row[0] for row in values(up)] == [4, 4, 0, 0]
    assert gained == 4
    down, _, _ = slide(grid, Direction.DOWN)
    assert [row[0] for row in values(down)] == [0, 0, 4, 4]


def test_blocked_slide_reports_no_movement():
    grid = grid_of([[2, 4, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]])
    _, _, moved = slide(grid, Direction.LEFT)
    assert not moved


def test_full_board_without_pairs_cannot_move():
    grid = grid_of([[2, 4, 2, 4], [4, 2, 4, 2], [2, 4, 2, 4], [4, 2, 4, 2]])
    assert not can_move(grid)


def test_place_rejects_occupied_cells():
    grid = grid_of([[2, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]])
    with pytest.raises(IllegalAction):
        place(grid, 0, 0, 2, IdSequence(10))


@pytest.fixture
def played_game():
    protocol, session_id = started()
    game = Game2048(protocol, session_id, BLOCK.height)
    game.play([Direction.LEFT, Direction.UP, Direction.RIGHT, Direction.DOWN] * 60)
    return game, game.submission(protocol.end_session(session_id))


def test_game_replays_to_its_score(played_game):
    game, submission = played_game
    assert submission.game_id.startswith("2048-")
    assert game.final_state()["next_tile_id"] == game.spawns + 1
    result = ReplayValidator([Grid2048Replayer()]).validate(submission)
    assert isinstance(result, Ok)
    assert result.value.calculated_score == game.score
    assert result.value.details["max_tile"] == game.final_state()["max_tile"]


def test_dropped_move_is_rejected(played_game):
    _, submission = played_game
    submission.action_history = submission.action_history[:-1]
    result = ReplayValidator([Grid2048Replayer()]).validate(submission)
    assert not result.ok


def test_unknown_direction_is_structural(played_game):
    _, submission = played_game
    submission.action_history[0] = {"direction": "diagonal"}
    result = ReplayValidator([Grid2048Replayer()]).validate(submission)
    assert result.kind is ErrorKind.STRUCTURAL_ERROR


def test_moved_spawn_is_a_seed_mismatch(played_game):
    _, submission = played_game
    from dataclasses import replace

    first = submission.random_history[0]
    row, col, value = first.output
    submission.random_history[0] = replace(first, output=((row + 1) % 4, col, value))
    result = ReplayValidator([Grid2048Replayer()]).validate(submission)
    assert result.kind is ErrorKind.SEED_MISMATCH
