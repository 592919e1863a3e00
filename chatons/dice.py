"""Dice rolling: uniform die faces and evaluation of dice groups."""

from __future__ import annotations

import random
from enum import Enum

from chatons.config import Settings, settings as default_settings
from chatons.models import DiceTerm, DieResult
from chatons.modifiers import apply_modifiers


class EvaluationMode(str, Enum):
    RANDOM = "random"
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


def roll_die(faces: int, mode: EvaluationMode = EvaluationMode.RANDOM, rng=None) -> int:
    """Roll one die with the given number of faces.

    ``rng`` is any object with a ``randint`` method; the ``random`` module is
    used when it is None.
    """
    if mode == EvaluationMode.MINIMIZE:
        return min(1, faces)
    if mode == EvaluationMode.MAXIMIZE:
        return faces
    return (rng or random).randint(1, faces)


def roll_dice_term(
    term: DiceTerm,
    mode: EvaluationMode = EvaluationMode.RANDOM,
    rng=None,
    settings: Settings | None = None,
) -> DiceTerm:
    """Roll every die of a group in index order, then apply its modifiers."""
    settings = settings or default_settings

    def roll_one() -> int:
        return roll_die(term.faces, mode, rng)

    term.results = [DieResult(face_value=roll_one()) for _ in range(term.number)]
    apply_modifiers(
        term.results,
        term.modifiers,
        roll_one,
        explosion_limit=settings.max_explosions,
    )
    term.evaluated = True
    return term
