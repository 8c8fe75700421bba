from __future__ import annotations

from fairplay.contracts import DrawKind, GameType, ScoreReport, Submission, ValidationIssue
from fairplay.core import IllegalAction
from fairplay.fairness.cards import standard_deck
from fairplay.games.garbage import (
    MAX_ROUNDS,
    MAX_SECONDS_PER_ROUND,
    MIN_ROUNDS,
    MIN_SECONDS_PER_ROUND,
    PLAYER,
    SIDES,
    GarbageRound,
    deck_label,
    garbage_score,
)
from fairplay.validation.replay import DrawCursor, ExactScore, metadata_number
from fairplay.validation.structural import ShapeCheck, is_number

ACTION_TYPES = {"draw", "take_discard", "place", "discard"}


class GarbageReplayer(ExactScore):
    game_type = GameType.GARBAGE
    needs_secret = True

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        rounds = submission.action_history
        shape.require(
            MIN_ROUNDS <= len(rounds) <= MAX_ROUNDS,
            "INVALID_ROUND_COUNT",
            "action_history",
            f"expected {MIN_ROUNDS}-{MAX_ROUNDS} rounds, got {len(rounds)}",
        )
        time_seconds = submission.metadata.get("time_seconds")
        shape.require(time_seconds is None or is_number(time_seconds), "INVALID_TIME", "metadata.time_seconds", "time must be a number")
        for index, rnd in enumerate(rounds):
            path = f"action_history[{index}]"
            if not shape.require(isinstance(rnd, dict), "INVALID_ROUND", path, "round must be an object"):
                continue
            shape.require(is_number(rnd.get("seconds")), "INVALID_ROUND_TIME", f"{path}.seconds", "round time must be a number")
            actions = rnd.get("actions")
            if not shape.require(isinstance(actions, list), "INVALID_ACTIONS", f"{path}.actions", "actions must be a list"):
                continue
            for a, action in enumerate(actions):
                ok = isinstance(action, dict) and action.get("side") in SIDES and action.get("type") in ACTION_TYPES
                shape.require(ok, "INVALID_ACTION", f"{path}.actions[{a}]", f"malformed action {action!r}")
        return shape.issues

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        deck = standard_deck()
        winners: list[str | None] = []
        for index, rnd in enumerate(submission.action_history):
            number = index + 1
            draw = draws.take(deck_label(number), DrawKind.PERMUTATION, deck=deck)
            game_round = GarbageRound(draw.output)
            for action in rnd["actions"]:
                game_round.apply(action)
            if not game_round.over:
                raise IllegalAction(f"round {number} stops before anyone finished or the pile ran out")
            winners.append(game_round.winner)

        rounds = len(winners)
        time_seconds = metadata_number(submission.metadata, "time_seconds")
        if time_seconds is None:
            time_seconds = sum(rnd["seconds"] for rnd in submission.action_history)
        per_round = time_seconds / rounds
        if not MIN_SECONDS_PER_ROUND <= per_round <= MAX_SECONDS_PER_ROUND:
            raise IllegalAction(
                f"average {per_round:.1f}s per round is outside {MIN_SECONDS_PER_ROUND}-{MAX_SECONDS_PER_ROUND}s"
            )
        player_won = winners[-1] == PLAYER
        return ScoreReport(
            calculated_score=garbage_score(rounds, player_won, time_seconds),
            details={"rounds": rounds, "player_won": player_won, "round_winners": winners, "time_seconds": time_seconds},
        )
