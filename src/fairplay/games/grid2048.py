from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from fairplay.contracts import DrawKind, GameType, RandomDraw, Reveal, Submission
from fairplay.core import IdSequence, IllegalAction
from fairplay.fairness.expander import grid_spawn
from fairplay.fairness.seeds import SeedProtocol

GRID_SIZE = 4
INITIAL_SPAWNS = 2
WIN_VALUE = 2048


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(slots=True, frozen=True)
class Tile:
    tile_id: int
    value: int


Grid = list[list[Tile | None]]


def spawn_label(index: int) -> str:
    return f"spawn-{index}"


def make_2048_game_id(block_height: int) -> str:
    return f"2048-{secrets.token_hex(4)}-{block_height}-{secrets.token_hex(2)}"


def empty_grid() -> Grid:
    return [[None] * GRID_SIZE for _ in range(GRID_SIZE)]


def empty_cells(grid: Grid) -> list[tuple[int, int]]:
    return [(r, c) for r in range(GRID_SIZE) for c in range(GRID_SIZE) if grid[r][c] is None]


def values(grid: Grid) -> list[list[int]]:
    return [[tile.value if tile else 0 for tile in row] for row in grid]


def max_tile(grid: Grid) -> int:
    return max((tile.value for row in grid for tile in row if tile), default=0)


def _rotate_clockwise(grid: Grid) -> Grid:
    return [[grid[GRID_SIZE - 1 - c][r] for c in range(GRID_SIZE)] for r in range(GRID_SIZE)]


def _rotate_counter_clockwise(grid: Grid) -> Grid:
    return [[grid[c][GRID_SIZE - 1 - r] for c in range(GRID_SIZE)] for r in range(GRID_SIZE)]


def _slide_row_left(row: Sequence[Tile | None]) -> tuple[list[Tile | None], int]:
    tiles = [t for t in row if t is not None]
    merged: list[Tile | None] = []
    gained = 0
    i = 0
    while i < len(tiles):
        if i + 1 < len(tiles) and tiles[i].value == tiles[i + 1].value:
            value = tiles[i].value * 2
            merged.append(Tile(tiles[i].tile_id, value))
            gained += value
            i += 2
        else:
            merged.append(tiles[i])
            i += 1
    merged.extend([None] * (GRID_SIZE - len(merged)))
    return merged, gained


def slide(grid: Grid, direction: Direction) -> tuple[Grid, int, bool]:
    """Slides every line toward ``direction``; a tile merges at most once per move.

    Returns ``(new_grid, points_gained, moved)``. The merged tile keeps the id
    of the tile nearer the wall.
    """
    rotate_in: Callable[[Grid], Grid]
    rotate_out: Callable[[Grid], Grid]
    if direction is Direction.LEFT:
        rotate_in = rotate_out = lambda g: g
    elif direction is Direction.RIGHT:
        rotate_in = rotate_out = lambda g: _rotate_clockwise(_rotate_clockwise(g))
    elif direction is Direction.UP:
        rotate_in, rotate_out = _rotate_counter_clockwise, _rotate_clockwise
    else:
        rotate_in, rotate_out = _rotate_clockwise, _rotate_counter_clockwise

    gained = 0
    working: Grid = []
    for row in rotate_in(grid):
        new_row, points = _slide_row_left(row)
        working.append(new_row)
        gained += points
    result = rotate_out(working)
    return result, gained, values(result) != values(grid)


def can_move(grid: Grid) -> bool:
    if empty_cells(grid):
        return True
    for r in range(GRID_SIZE):
        for c in range(GRID_SIZE):
            value = grid[r][c].value
            if c + 1 < GRID_SIZE and grid[r][c + 1].value == value:
                return True
            if r + 1 < GRID_SIZE and grid[r + 1][c].value == value:
                return True
    return False


def place(grid: Grid, row: int, col: int, value: int, ids: IdSequence) -> Grid:
    if grid[row][col] is not None:
        raise IllegalAction(f"cell ({row}, {col}) is occupied")
    updated = [list(r) for r in grid]
    updated[row][col] = Tile(ids.next(), value)
    return updated


class Game2048:
    """Seeded 2048 board. Spawns come from the session; tile ids from the game's own sequence."""

    def __init__(self, protocol: SeedProtocol, session_id: str, block_height: int) -> None:
        self.protocol = protocol
        self.session_id = session_id
        self.game_id = make_2048_game_id(block_height)
        self.ids = IdSequence()
        self.grid = empty_grid()
        self.score = 0
        self.spawns = 0
        self.action_history: list[dict[str, Any]] = []
        self.random_history: list[RandomDraw] = []
        for _ in range(INITIAL_SPAWNS):
            self._spawn()

    def _spawn(self) -> None:
        label = spawn_label(self.spawns)
        self.spawns += 1
        drawn = self.protocol.derive_record(self.session_id, label)
        seed = drawn.seed
        row, col, value = grid_spawn(seed, empty_cells(self.grid))
        self.grid = place(self.grid, row, col, value, self.ids)
        self.random_history.append(RandomDraw(label, DrawKind.SPAWN, (row, col, value), seed, drawn.block))

    @property
    def over(self) -> bool:
        return not can_move(self.grid)

    def move(self, direction: Direction) -> int:
        grid, gained, moved = slide(self.grid, direction)
        if not moved:
            raise IllegalAction(f"move {direction.value} changes nothing")
        self.grid = grid
        self.score += gained
        self.action_history.append({"direction": direction.value})
        self._spawn()
        return gained

    def play(self, directions: Sequence[Direction]) -> int:
        """Plays each direction that changes the board; stops when the game is over."""
        for direction in directions:
            if self.over:
                break
            if slide(self.grid, direction)[2]:
                self.move(direction)
        return self.score

    def final_state(self) -> dict[str, Any]:
        return {"grid": values(self.grid), "max_tile": max_tile(self.grid), "next_tile_id": self.ids.peek}

    def submission(self, reveal: Reveal) -> Submission:
        return Submission(
            game_type=GameType.GAME_2048,
            game_id=self.game_id,
            action_history=list(self.action_history),
            random_history=list(self.random_history),
            claimed_score=self.score,
            claimed_final_state=self.final_state(),
            secret=reveal.secret,
            secret_hash=reveal.secret_hash,
            block=reveal.block,
        )
