"""Success-counting checks and the one-time reroll.

A check rolls a handful of d6 and counts every die at or under the
difficulty. The player needs as many successes as dice rolled; when they
fall short they may reroll a single die, once.
"""

from __future__ import annotations

import logging
from typing import Any

from chatons.config import Settings
from chatons.models import CheckMode, DieResult, OutcomeState, RollOutcome, format_number
from chatons.roll import Roll
from chatons.tables import CHECK_DICE, CHECK_FACES

logger = logging.getLogger(__name__)


def check_formula(difficulty: int, dice: int) -> str:
    return f"{dice}D{CHECK_FACES}cs<={difficulty}"


def _roll_dice(formula: str, rng, settings: Settings | None) -> list[DieResult]:
    roll = Roll(formula, settings=settings).evaluate(rng=rng)
    return [r.model_copy() for r in roll.dice[0].results]


def roll_check(
    label: str,
    difficulty: int,
    mode: CheckMode = CheckMode.STANDARD,
    rng=None,
    settings: Settings | None = None,
) -> RollOutcome:
    """Roll a check: 3d6, or 4d6 with advantage, or 2d6 with disadvantage."""
    if difficulty < 0:
        raise ValueError(f"Difficulty must not be negative, got {difficulty}")
    mode = CheckMode(mode)
    baseline = CHECK_DICE[mode]
    formula = check_formula(difficulty, baseline)
    dice = _roll_dice(formula, rng, settings)
    successes = sum(1 for d in dice if d.active and d.success)

    outcome = RollOutcome(
        label=label,
        difficulty=difficulty,
        formula=formula,
        mode=mode,
        baseline=baseline,
        dice=dice,
        success_count=successes,
        reroll_available=successes < baseline,
    )
    logger.info(
        "%s: %s -> %d/%d successes", label, formula, successes, baseline
    )
    return outcome


def reroll(
    outcome: RollOutcome,
    index: int,
    rng=None,
    settings: Settings | None = None,
) -> RollOutcome:
    """Replace the die at index with a fresh one, at most once per outcome.

    The old die stays in ``dice`` marked inactive and the new one is appended.
    On an already amended outcome this does nothing.

    Raises:
        ValueError: If index does not name an active die.
    """
    if outcome.state == OutcomeState.AMENDED:
        logger.info("Ignoring reroll on %r: already amended", outcome.label)
        return outcome
    if not 0 <= index < len(outcome.dice) or not outcome.dice[index].active:
        raise ValueError(f"No active die at index {index}")

    fresh = _roll_dice(check_formula(outcome.difficulty, 1), rng, settings)[0]
    discarded = outcome.dice[index]
    discarded.active = False
    if discarded.success:
        outcome.success_count -= 1
    if fresh.success:
        outcome.success_count += 1
    outcome.dice.append(fresh)
    outcome.state = OutcomeState.AMENDED
    outcome.reroll_available = False

    logger.info(
        "%s: rerolled %s into %s, now %d/%d successes",
        outcome.label,
        format_number(discarded.face_value),
        format_number(fresh.face_value),
        outcome.success_count,
        outcome.baseline,
    )
    return outcome


# --- Rendering ---


def _die_text(die: DieResult) -> str:
    value = format_number(die.face_value)
    if not die.active:
        return f"~{value}~"
    if die.success:
        return f"[{value}]"
    return value


def tooltip(outcome: RollOutcome) -> str:
    """Plain-text breakdown: ``[n]`` success, ``n`` failure, ``~n~`` discarded."""
    dice = " ".join(_die_text(d) for d in outcome.dice)
    return f"{outcome.formula}: {dice} -> {outcome.success_count}"


def render_context(outcome: RollOutcome) -> dict[str, Any]:
    """Values for a host template showing the check."""
    return {
        "label": outcome.label,
        "formula": outcome.formula,
        "tooltip": tooltip(outcome),
        "total": outcome.success_count,
        "dice": outcome.breakdown(),
    }
