from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from fairplay.contracts import BAR, OFF, Move, Player
from fairplay.core import StructuralError

POINT_COUNT = 24
CHECKERS_PER_SIDE = 15
HOME = {
    Player.WHITE: range(0, 6),
    Player.BLACK: range(18, 24),
}
STANDARD_LAYOUT = {
    Player.WHITE: {23: 2, 12: 5, 7: 3, 5: 5},
    Player.BLACK: {0: 2, 11: 5, 16: 3, 18: 5},
}


def direction(player: Player) -> int:
    return -1 if player is Player.WHITE else 1


def _sign(player: Player) -> int:
    return 1 if player is Player.WHITE else -1


@dataclass(frozen=True, slots=True)
class PointState:
    count: int
    owner: Player | None


@dataclass(frozen=True, slots=True)
class BoardState:
    """Immutable backgammon position.

    ``points`` holds signed counts per index 0..23: positive for White,
    negative for Black. White travels toward index 0 and Black toward 23.
    """

    points: tuple[int, ...]
    white_bar: int = 0
    black_bar: int = 0
    white_off: int = 0
    black_off: int = 0

    @staticmethod
    def initial() -> BoardState:
        return BoardState.from_layout(STANDARD_LAYOUT[Player.WHITE], STANDARD_LAYOUT[Player.BLACK])

    @staticmethod
    def from_layout(
        white: Mapping[int, int],
        black: Mapping[int, int],
        *,
        white_bar: int = 0,
        black_bar: int = 0,
        white_off: int = 0,
        black_off: int = 0,
    ) -> BoardState:
        points = [0] * POINT_COUNT
        for index, count in white.items():
            points[index] += count
        for index, count in black.items():
            if points[index] > 0:
                raise StructuralError(f"point {index} cannot hold both colors")
            points[index] -= count
        return BoardState(tuple(points), white_bar, black_bar, white_off, black_off)

    def point(self, index: int) -> PointState:
        value = self.points[index]
        if value == 0:
            return PointState(0, None)
        return PointState(abs(value), Player.WHITE if value > 0 else Player.BLACK)

    def count(self, index: int, player: Player) -> int:
        value = self.points[index] * _sign(player)
        return value if value > 0 else 0

    def bar(self, player: Player) -> int:
        return self.white_bar if player is Player.WHITE else self.black_bar

    def off(self, player: Player) -> int:
        return self.white_off if player is Player.WHITE else self.black_off

    def occupied(self, player: Player) -> list[int]:
        return [i for i in range(POINT_COUNT) if self.count(i, player) > 0]

    def total(self, player: Player) -> int:
        return sum(self.count(i, player) for i in range(POINT_COUNT)) + self.bar(player) + self.off(player)

    def is_blocked(self, index: int, player: Player) -> bool:
        return self.count(index, player.opponent) >= 2

    def all_home(self, player: Player) -> bool:
        if self.bar(player):
            return False
        home = HOME[player]
        return all(i in home for i in self.occupied(player))

    def pip_count(self, player: Player) -> int:
        pips = 25 * self.bar(player)
        for i in self.occupied(player):
            distance = i + 1 if player is Player.WHITE else POINT_COUNT - i
            pips += distance * self.count(i, player)
        return pips

    def apply(self, move: Move) -> BoardState:
        player = move.player
        sign = _sign(player)
        points = list(self.points)
        bars = {Player.WHITE: self.white_bar, Player.BLACK: self.black_bar}
        offs = {Player.WHITE: self.white_off, Player.BLACK: self.black_off}

        if move.from_point == BAR:
            if bars[player] <= 0:
                raise StructuralError(f"{player.value} has no checker on the bar")
            bars[player] -= 1
        else:
            source = int(move.from_point)
            if self.count(source, player) <= 0:
                raise StructuralError(f"{player.value} has no checker on point {source}")
            points[source] -= sign

        if move.to_point == OFF:
            offs[player] += 1
        else:
            target = int(move.to_point)
            if points[target] * sign < 0:
                if abs(points[target]) > 1:
                    raise StructuralError(f"point {target} is blocked")
                points[target] = 0
                bars[player.opponent] += 1
            points[target] += sign

        return BoardState(
            tuple(points),
            bars[Player.WHITE],
            bars[Player.BLACK],
            offs[Player.WHITE],
            offs[Player.BLACK],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "points": [
                {"count": p.count, "owner": p.owner.value if p.owner else None}
                for p in (self.point(i) for i in range(POINT_COUNT))
            ],
            "bar": {"white": self.white_bar, "black": self.black_bar},
            "borne_off": {"white": self.white_off, "black": self.black_off},
        }

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> BoardState:
        try:
            cells = raw["points"]
            if len(cells) != POINT_COUNT:
                raise StructuralError(f"board needs {POINT_COUNT} points, got {len(cells)}")
            points = []
            for cell in cells:
                count = int(cell["count"])
                owner = cell.get("owner")
                if count < 0 or (count and owner not in {"white", "black"}):
                    raise StructuralError(f"invalid point {cell!r}")
                points.append(count if owner == "white" else -count)
            bar = raw.get("bar") or {}
            off = raw.get("borne_off") or {}
            board = BoardState(
                tuple(points),
                int(bar.get("white", 0)),
                int(bar.get("black", 0)),
                int(off.get("white", 0)),
                int(off.get("black", 0)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StructuralError(f"malformed board: {exc}") from exc
        for player in Player:
            if board.total(player) != CHECKERS_PER_SIDE:
                raise StructuralError(f"{player.value} must have {CHECKERS_PER_SIDE} checkers")
        return board
