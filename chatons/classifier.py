"""Classify formula fragments into numeric, dice or still-unresolved terms."""

from __future__ import annotations

import re

from chatons.config import Settings, settings as default_settings
from chatons.errors import FormatError
from chatons.models import DiceTerm, NumericTerm, StringTerm
from chatons.modifiers import parse_modifiers

_FLAVOR = r"(?:\[(?P<flavor>[^\]]+)\])?"

NUMERIC_RE = re.compile(rf"^(?P<number>-?\d+(?:\.\d+)?){_FLAVOR}$")
DICE_RE = re.compile(
    r"^(?P<number>\d+)?[dD](?P<faces>\d+)"
    r"(?P<modifiers>[A-Za-z][A-Za-z0-9<=>]*)?"
    rf"{_FLAVOR}$"
)


def _is_intermediate(term) -> bool:
    return getattr(term, "is_intermediate", False)


def classify_term(
    term,
    intermediate: bool = True,
    prior=None,
    next_term=None,
    settings: Settings | None = None,
):
    """Turn a raw fragment into a term given its neighbours.

    In an intermediate pass a dice expression with no count stays a string, as does
    any dice expression sitting next to a group that has not been resolved yet: the
    group's value may still be glued onto it, as in ``(2+1)d6``. The final
    pass imputes a count of 1. Anything that matches nothing stays a string.
    """
    if not isinstance(term, str):
        return term

    m = NUMERIC_RE.match(term)
    if m:
        return NumericTerm(number=float(m.group("number")), flavor=m.group("flavor"))

    m = DICE_RE.match(term)
    if m and (m.group("number") is not None or not intermediate):
        if intermediate and (_is_intermediate(prior) or _is_intermediate(next_term)):
            return StringTerm(term=term)
        return dice_term_from_match(m, settings)

    return StringTerm(term=term)


def dice_term_from_match(m: re.Match[str], settings: Settings | None = None) -> DiceTerm:
    """Build a DiceTerm from a DICE_RE match, enforcing the configured limits."""
    settings = settings or default_settings
    number = int(m.group("number") or 1)
    faces = int(m.group("faces"))
    if faces < 1:
        raise FormatError(f"Dice need at least one face: {m.group(0)!r}")
    if number > settings.max_dice:
        raise FormatError(f"Too many dice: {number} (max {settings.max_dice})")
    if faces > settings.max_faces:
        raise FormatError(f"Too many faces: {faces} (max {settings.max_faces})")
    return DiceTerm(
        number=number,
        faces=faces,
        modifiers=parse_modifiers(m.group("modifiers") or "", faces),
        flavor=m.group("flavor"),
    )
