"""Legal move enumeration for backgammon.

The engine answers one question per ply: which single checker moves may the
player make now, given every die still to be played this turn. Single moves
are generated in isolation and then filtered by a depth-first search over
orderings of the remaining dice (at most four plies deep):

* only first moves that belong to some sequence playing the maximum number
  of dice survive;
* when two different dice are rolled and only one can be played, the larger
  one must be used whenever any sequence uses it.

An empty result is a forced pass.
"""

from __future__ import annotations

from typing import Sequence

from fairplay.backgammon.board import HOME, POINT_COUNT, BoardState, direction
from fairplay.contracts import BAR, OFF, Move, Player
from fairplay.core import IllegalAction, StructuralError
from fairplay.fairness.expander import expand_dice

MAX_DICE_PER_TURN = 4

DiceKey = tuple[int, ...]


def entry_point(player: Player, die: int) -> int:
    return POINT_COUNT - die if player is Player.WHITE else die - 1


def bear_off_distance(player: Player, index: int) -> int:
    return index + 1 if player is Player.WHITE else POINT_COUNT - index


def _has_checker_further(board: BoardState, player: Player, index: int) -> bool:
    if player is Player.WHITE:
        return any(board.count(i, player) for i in range(index + 1, 6))
    return any(board.count(i, player) for i in range(18, index))


def single_moves(board: BoardState, player: Player, die: int) -> list[Move]:
    """Moves playable with one die, ignoring the rest of the roll."""
    if board.bar(player):
        target = entry_point(player, die)
        if board.is_blocked(target, player):
            return []
        return [Move(BAR, target, die, player)]

    moves: list[Move] = []
    step = direction(player)
    bearing_off = board.all_home(player)
    for source in board.occupied(player):
        target = source + step * die
        if 0 <= target < POINT_COUNT:
            if not board.is_blocked(target, player):
                moves.append(Move(source, target, die, player))
            continue
        if not bearing_off or source not in HOME[player]:
            continue
        distance = bear_off_distance(player, source)
        if distance == die or (die > distance and not _has_checker_further(board, player, source)):
            moves.append(Move(source, OFF, die, player))
    return moves


def _position_key(point: int | str) -> int:
    if point == BAR:
        return POINT_COUNT
    if point == OFF:
        return -1
    return int(point)


def move_sort_key(move: Move) -> tuple[int, int, int]:
    return (-move.die_value, -_position_key(move.from_point), -_position_key(move.to_point))


def _without(dice: DiceKey, die: int) -> DiceKey:
    index = dice.index(die)
    return dice[:index] + dice[index + 1 :]


def normalize_dice(dice: Sequence[int]) -> DiceKey:
    values = list(dice)
    if not 1 <= len(values) <= MAX_DICE_PER_TURN or any(not 1 <= d <= 6 for d in values):
        raise StructuralError(f"invalid dice {list(dice)!r}")
    return tuple(sorted(values))


class MoveLegalityEngine:
    """Stateless between calls; each query builds its own search memo."""

    def max_playable(self, board: BoardState, dice: Sequence[int], player: Player) -> int:
        return self._search(board, player, normalize_dice(dice), {})

    def _search(
        self,
        board: BoardState,
        player: Player,
        dice: DiceKey,
        memo: dict[tuple[BoardState, DiceKey], int],
    ) -> int:
        if not dice:
            return 0
        key = (board, dice)
        cached = memo.get(key)
        if cached is not None:
            return cached
        best = 0
        for die in sorted(set(dice), reverse=True):
            rest = _without(dice, die)
            for move in single_moves(board, player, die):
                played = 1 + self._search(board.apply(move), player, rest, memo)
                if played > best:
                    best = played
                if best == len(dice):
                    memo[key] = best
                    return best
        memo[key] = best
        return best

    def legal_moves(self, board: BoardState, dice: Sequence[int], player: Player) -> list[Move]:
        key = normalize_dice(dice)
        memo: dict[tuple[BoardState, DiceKey], int] = {}
        reach: dict[Move, int] = {}
        for die in sorted(set(key), reverse=True):
            rest = _without(key, die)
            for move in single_moves(board, player, die):
                reach[move] = 1 + self._search(board.apply(move), player, rest, memo)
        if not reach:
            return []

        top = max(reach.values())
        legal = [move for move, played in reach.items() if played == top]
        if top == 1 and len(key) == 2 and key[0] != key[1]:
            high = [move for move in legal if move.die_value == key[1]]
            if high:
                legal = high
        return sorted(legal, key=move_sort_key)

    def is_legal(self, board: BoardState, dice: Sequence[int], move: Move) -> bool:
        return move in self.legal_moves(board, dice, move.player)

    def validate_turn(
        self,
        board: BoardState,
        dice: Sequence[int],
        player: Player,
        moves: Sequence[Move],
    ) -> BoardState:
        """Replays one recorded turn from its rolled pair.

        Raises ``IllegalAction`` on the first bad ply or when fewer dice are
        used than the position allows.
        """
        remaining = list(normalize_dice(expand_dice(dice)))
        required = self.max_playable(board, remaining, player)
        for ply, move in enumerate(moves):
            if move.player is not player:
                raise IllegalAction(f"ply {ply}: move belongs to {move.player.value}, turn is {player.value}")
            if not remaining:
                raise IllegalAction(f"ply {ply}: no dice left to play")
            if move not in self.legal_moves(board, remaining, player):
                raise IllegalAction(
                    f"ply {ply}: {move.from_point}->{move.to_point} with {move.die_value} is not legal for {player.value}"
                )
            board = board.apply(move)
            remaining.remove(move.die_value)
        if len(moves) < required:
            raise IllegalAction(f"turn played {len(moves)} dice but {required} were playable")
        return board
