"""Character sheet state: qualities, gauges, talents and the checks they drive."""

from __future__ import annotations

from typing import Any

from chatons.config import Settings
from chatons.models import CheckMode, Chaton, RollOutcome, Talent
from chatons.outcome import roll_check
from chatons.substitution import get_property
from chatons.tables import QUALITIES, TALENTS


class CharacterError(Exception):
    pass


def recompute_derived(chaton: Chaton) -> Chaton:
    """Refresh the gauge maxima that follow from the qualities."""
    q = chaton.qualites
    chaton.coeur.max = q.costaud + q.malin
    chaton.amitie.max = q.mignon
    return chaton


def new_chaton(name: str, costaud: int = 0, malin: int = 0, mignon: int = 0) -> Chaton:
    chaton = Chaton(name=name, talents={t: Talent() for t in TALENTS})
    chaton.qualites.costaud = costaud
    chaton.qualites.malin = malin
    chaton.qualites.mignon = mignon
    return recompute_derived(chaton)


def set_quality(chaton: Chaton, quality: str, value: int) -> Chaton:
    if quality not in QUALITIES:
        raise CharacterError(f"Unknown quality '{quality}'. Valid: {list(QUALITIES)}")
    setattr(chaton.qualites, quality, value)
    return recompute_derived(chaton)


def set_talent(chaton: Chaton, talent: str, checked: bool = True, quality: str = "") -> Chaton:
    if talent not in TALENTS:
        raise CharacterError(f"Unknown talent '{talent}'.")
    if quality and quality not in QUALITIES:
        raise CharacterError(f"Unknown quality '{quality}'. Valid: {list(QUALITIES)}")
    chaton.talents[talent] = Talent(checked=checked, qualite=quality)
    return chaton


def roll_data(chaton: Chaton) -> dict[str, Any]:
    """The data ``@`` references resolve against, e.g. ``@qualites.malin``."""
    return chaton.model_dump(include={"qualites", "coeur", "amitie", "experience"})


def quality_check(
    chaton: Chaton,
    quality: str,
    mode: CheckMode = CheckMode.STANDARD,
    rng=None,
    settings: Settings | None = None,
) -> RollOutcome:
    if quality not in QUALITIES:
        raise CharacterError(f"Unknown quality '{quality}'. Valid: {list(QUALITIES)}")
    difficulty = get_property(roll_data(chaton), f"qualites.{quality}")
    return roll_check(QUALITIES[quality], difficulty, mode, rng=rng, settings=settings)


def talent_check(
    chaton: Chaton,
    talent: str,
    mode: CheckMode = CheckMode.ADVANTAGE,
    rng=None,
    settings: Settings | None = None,
) -> RollOutcome:
    """Check a talent against its quality; talents roll with advantage by default."""
    if talent not in chaton.talents:
        raise CharacterError(f"Unknown talent '{talent}'.")
    quality = chaton.talents[talent].qualite
    if not quality:
        raise CharacterError(f"Talent '{talent}' has no quality assigned.")
    difficulty = get_property(roll_data(chaton), f"qualites.{quality}")
    label = f"{talent} ({QUALITIES[quality]})"
    return roll_check(label, difficulty, mode, rng=rng, settings=settings)
