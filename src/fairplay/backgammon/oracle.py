from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Protocol, Sequence

from fairplay.backgammon.board import BoardState
from fairplay.contracts import Move, Player
from fairplay.core import IllegalAction

logger = logging.getLogger(__name__)


class MoveOracle(Protocol):
    def choose_move(self, board: BoardState, legal_moves: Sequence[Move], player: Player) -> Move | None: ...


class FirstLegalOracle(MoveOracle):
    """Always takes the first move of the engine's ordering; deterministic."""

    def choose_move(self, board: BoardState, legal_moves: Sequence[Move], player: Player) -> Move | None:
        return legal_moves[0] if legal_moves else None


class OracleGate:
    """Asks an untrusted oracle for a move and re-checks it against the legal set.

    The oracle only ever sees a snapshot; it cannot touch game state. An
    absent, slow or illegal answer raises ``IllegalAction``.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds

    def _ask(self, oracle: MoveOracle, board: BoardState, legal: list[Move], player: Player) -> Move | None:
        if self.timeout_seconds is None:
            return oracle.choose_move(board, list(legal), player)
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(oracle.choose_move, board, list(legal), player)
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeout as exc:
            raise IllegalAction(f"move oracle exceeded {self.timeout_seconds}s") from exc
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def choose(
        self,
        oracle: MoveOracle | None,
        board: BoardState,
        legal_moves: Sequence[Move],
        player: Player,
    ) -> Move:
        if oracle is None:
            raise IllegalAction("no move oracle available")
        legal = list(legal_moves)
        proposed = self._ask(oracle, board, legal, player)
        if proposed is None:
            raise IllegalAction("move oracle returned no move while legal moves exist")
        if proposed not in legal:
            logger.warning("oracle proposed illegal move player=%s move=%s", player.value, proposed)
            raise IllegalAction(f"oracle move {proposed.from_point}->{proposed.to_point} is not in the legal set")
        return proposed
