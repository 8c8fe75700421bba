from __future__ import annotations

from fairplay.contracts import DrawKind, GameType, ScoreReport, Submission, ValidationIssue
from fairplay.core import IllegalAction
from fairplay.games.yahtzee import DICE_COUNT, MAX_ROLLS, TURNS, Category, Scorecard, apply_roll, roll_label
from fairplay.validation.replay import DrawCursor, ExactScore
from fairplay.validation.structural import ShapeCheck

CATEGORY_NAMES = {c.value for c in Category}


class YahtzeeReplayer(ExactScore):
    game_type = GameType.YAHTZEE
    needs_secret = True

    def check_shape(self, submission: Submission) -> list[ValidationIssue]:
        shape = ShapeCheck(submission.game_id)
        turns = submission.action_history
        shape.require(len(turns) == TURNS, "INCOMPLETE_GAME", "action_history", f"expected {TURNS} turns, got {len(turns)}")
        for index, turn in enumerate(turns):
            path = f"action_history[{index}]"
            if not shape.require(isinstance(turn, dict), "INVALID_TURN", path, "turn must be an object"):
                continue
            shape.require(turn.get("turn", index + 1) == index + 1, "TURN_OUT_OF_ORDER", f"{path}.turn", f"expected turn {index + 1}")
            shape.require(turn.get("category") in CATEGORY_NAMES, "UNKNOWN_CATEGORY", f"{path}.category", f"unknown category {turn.get('category')!r}")
            rolls = turn.get("rolls")
            if not shape.require(
                isinstance(rolls, list) and 1 <= len(rolls) <= MAX_ROLLS,
                "INVALID_ROLL_COUNT",
                f"{path}.rolls",
                f"a turn has 1-{MAX_ROLLS} rolls",
            ):
                continue
            for r, roll in enumerate(rolls):
                held = roll.get("held") if isinstance(roll, dict) else None
                shape.require(
                    isinstance(held, list) and len(held) == DICE_COUNT and all(isinstance(h, bool) for h in held),
                    "INVALID_HOLD",
                    f"{path}.rolls[{r}].held",
                    f"held must list {DICE_COUNT} booleans",
                )
        return shape.issues

    def replay(self, submission: Submission, draws: DrawCursor) -> ScoreReport:
        card = Scorecard()
        rolls_used = 0
        for index, turn in enumerate(submission.action_history):
            number = index + 1
            dice: list[int] | None = None
            for r, roll in enumerate(turn["rolls"], start=1):
                draw = draws.take(roll_label(number, r), DrawKind.DICE)
                if len(draw.output) != DICE_COUNT:
                    raise IllegalAction(f"turn {number} roll {r}: expected {DICE_COUNT} dice")
                dice = apply_roll(dice, roll["held"], draw.output)
                claimed = roll.get("dice")
                if claimed is not None and list(claimed) != dice:
                    raise IllegalAction(f"turn {number} roll {r}: recorded dice {claimed} but replay gives {dice}")
                rolls_used += 1
            card.record(Category(turn["category"]), dice)

        claimed_card = (submission.claimed_final_state or {}).get("scorecard")
        if claimed_card is not None and dict(claimed_card) != card.to_dict():
            raise IllegalAction("claimed scorecard does not match the replayed scorecard")
        return ScoreReport(
            calculated_score=card.grand_total,
            details={
                "upper_total": card.upper_total,
                "upper_bonus": card.upper_bonus,
                "lower_total": card.lower_total,
                "yahtzee_bonus_count": card.yahtzee_bonus_count,
                "rolls": rolls_used,
            },
        )
