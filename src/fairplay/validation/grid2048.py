from __future__ import annotations

from fairplay.contracts import DrawKind, GameType, ScoreReport, Submission, ValidationIssue
from fairplay.core import IdSequence, IllegalAction
from fairplay.games.grid2048 import (
    INITIAL_SPAWNS,
    Direction,
    Grid,
    empty_cells,
    empty_grid,
    max_tile,
    place,
    slide,
    spawn_label,
    values,
)
from fairplay.validation.replay import DrawCursor, ExactScore
from fairplay.validation.structural import ShapeCheck

DIRECTIONS = {d.value for d in Direction}


class Grid2048Replayer(ExactScore):
    game_type = GameType.GAME_2048
    needs_secret = True

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        for index, action in enumerate(submission.action_history):
            direction = action.get("direction") if isinstance(action, dict) else None
            shape.require(
                direction in DIRECTIONS,
                "INVALID_DIRECTION",
                f"action_history[{index}].direction",
                f"direction must be one of {sorted(DIRECTIONS)}",
            )
        return shape.issues

    def _spawn(self, grid: Grid, index: int, draws: DrawCursor, ids: IdSequence) -> Grid:
        cells = empty_cells(grid)
        draw = draws.take(spawn_label(index), DrawKind.SPAWN, empty_cells=cells)
        row, col, value = draw.output
        return place(grid, row, col, value, ids)

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        ids = IdSequence()
        grid = empty_grid()
        spawns = 0
        for _ in range(INITIAL_SPAWNS):
            grid = self._spawn(grid, spawns, draws, ids)
            spawns += 1

        score = 0
        for index, action in enumerate(submission.action_history):
            direction = Direction(action["direction"])
            grid, gained, moved = slide(grid, direction)
            if not moved:
                raise IllegalAction(f"move {index} ({direction.value}) changes nothing")
            score += gained
            grid = self._spawn(grid, spawns, draws, ids)
            spawns += 1

        claimed = (submission.claimed_final_state or {}).get("grid")
        if claimed is not None and [list(row) for row in claimed] != values(grid):
            raise IllegalAction("claimed final grid does not match the replayed grid")
        return ScoreReport(
            calculated_score=score,
            details={"moves": len(submission.action_history), "max_tile": max_tile(grid), "next_tile_id": ids.peek},
        )
