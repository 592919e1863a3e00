"""Dice modifiers: parsing modifier codes and applying them to results.

Modifiers run in the order they are written. Each one only looks at dice
that are still active, and none of them re-activates a discarded die;
rerolls and explosions add new dice instead.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from chatons.errors import FormatError
from chatons.models import DieResult, Modifier, ModifierKind

logger = logging.getLogger(__name__)

# Known codes longest first so a bare code can be followed by another
# ("khcs>=3"); any other run of letters is reported as unknown.
_CODE_RE = re.compile(
    r"(kh|kl|dh|dl|xo|cs|cf|k|d|r|x|[a-z]+)((?:<=|>=|<|>|=)?\d*)", re.IGNORECASE
)

_CONDITION_RE = re.compile(r"^(<=|>=|<|>|=)?(\d+)?$")

_KEEP_DROP: dict[str, ModifierKind] = {
    "k": ModifierKind.KEEP_HIGHEST,
    "kh": ModifierKind.KEEP_HIGHEST,
    "kl": ModifierKind.KEEP_LOWEST,
    "dh": ModifierKind.DROP_HIGHEST,
    "d": ModifierKind.DROP_LOWEST,
    "dl": ModifierKind.DROP_LOWEST,
}

_CONDITIONAL: dict[str, ModifierKind] = {
    "r": ModifierKind.REROLL,
    "x": ModifierKind.EXPLODE,
    "xo": ModifierKind.EXPLODE_ONCE,
    "cs": ModifierKind.COUNT_SUCCESSES,
    "cf": ModifierKind.COUNT_FAILURES,
}

POOL_KINDS = frozenset(
    {
        ModifierKind.KEEP_HIGHEST,
        ModifierKind.KEEP_LOWEST,
        ModifierKind.DROP_HIGHEST,
        ModifierKind.DROP_LOWEST,
        ModifierKind.COUNT_SUCCESSES,
        ModifierKind.COUNT_FAILURES,
    }
)


def parse_modifiers(text: str, faces: int | None = None, pool: bool = False) -> list[Modifier]:
    """Parse a run of modifier codes such as ``kh2cs<=3``.

    ``faces`` supplies the default target for explode and count codes; pools
    have no faces, so their count codes must name a target.

    Raises:
        FormatError: On an unknown or malformed code.
    """
    modifiers: list[Modifier] = []
    pos = 0
    while pos < len(text):
        m = _CODE_RE.match(text, pos)
        if not m:
            raise FormatError(f"Invalid modifier {text[pos:]!r}")
        modifiers.append(_parse_one(m.group(1).lower(), m.group(2), m.group(0), faces))
        pos = m.end()

    if pool:
        for mod in modifiers:
            if mod.kind not in POOL_KINDS:
                raise FormatError(f"Modifier {mod.code!r} cannot apply to a dice pool")
    return modifiers


def _parse_one(name: str, rest: str, code: str, faces: int | None) -> Modifier:
    if name in _KEEP_DROP:
        if rest and not rest.isdigit():
            raise FormatError(f"Invalid modifier {code!r}")
        return Modifier(kind=_KEEP_DROP[name], code=code, amount=int(rest or 1))

    if name in _CONDITIONAL:
        kind = _CONDITIONAL[name]
        cond = _CONDITION_RE.match(rest)
        if not cond or (cond.group(1) and not cond.group(2)):
            raise FormatError(f"Invalid modifier {code!r}")
        comparator = cond.group(1) or "="
        if cond.group(2):
            target = int(cond.group(2))
        elif kind == ModifierKind.REROLL:
            target = 1
        elif faces is not None:
            target = faces
        else:
            raise FormatError(f"Modifier {code!r} needs a target")
        return Modifier(kind=kind, code=code, comparator=comparator, target=target)

    raise FormatError(f"Unknown modifier {code!r}")


def compare(value: float, comparator: str, target: float) -> bool:
    if comparator == "<":
        return value < target
    if comparator == "<=":
        return value <= target
    if comparator == ">":
        return value > target
    if comparator == ">=":
        return value >= target
    return value == target


# --- Application ---


def keep_or_drop(
    results: list[DieResult], amount: int, keep: bool = True, highest: bool = True
) -> int:
    """Discard active dice for a keep/drop modifier, returning how many went.

    Ties are broken by position: the earliest tied die is discarded first.
    """
    active = [(i, r) for i, r in enumerate(results) if r.active]
    if keep:
        n_discard = max(len(active) - amount, 0)
    else:
        n_discard = min(max(amount, 0), len(active))
    discard_lowest = keep == highest

    def _key(item: tuple[int, DieResult]) -> tuple[float, int]:
        index, result = item
        value = result.face_value if discard_lowest else -result.face_value
        return value, index

    for _, result in sorted(active, key=_key)[:n_discard]:
        result.active = False
    return n_discard


def count_successes(results: list[DieResult], comparator: str, target: float) -> int:
    """Flag every active die as a success or failure and count the successes."""
    successes = 0
    for r in results:
        if not r.active:
            continue
        r.success = compare(r.face_value, comparator, target)
        r.count = 1 if r.success else 0
        successes += r.count
    return successes


def count_failures(results: list[DieResult], comparator: str, target: float) -> int:
    failures = 0
    for r in results:
        if not r.active:
            continue
        failed = compare(r.face_value, comparator, target)
        if failed:
            r.success = False
        r.count = 1 if failed else 0
        failures += r.count
    return failures


def reroll(
    results: list[DieResult], comparator: str, target: int, roll_one: Callable[[], int]
) -> int:
    """Reroll each matching die once; new dice are appended, never rerolled."""
    rerolled = 0
    for r in list(results):
        if not r.active or not compare(r.face_value, comparator, target):
            continue
        r.rerolled = True
        r.active = False
        results.append(DieResult(face_value=roll_one()))
        rerolled += 1
    return rerolled


def explode(
    results: list[DieResult],
    comparator: str,
    target: int,
    roll_one: Callable[[], int],
    once: bool = False,
    limit: int = 100,
) -> int:
    """Add a die for each matching die; new dice may explode again unless once."""
    initial = len(results)
    explosions = 0
    checked = 0
    while checked < len(results):
        r = results[checked]
        checked += 1
        if once and checked > initial:
            break
        if not r.active or r.exploded or not compare(r.face_value, comparator, target):
            continue
        if explosions >= limit:
            logger.warning("Explosion limit of %d reached", limit)
            break
        r.exploded = True
        results.append(DieResult(face_value=roll_one()))
        explosions += 1
    return explosions


def apply_modifiers(
    results: list[DieResult],
    modifiers: list[Modifier],
    roll_one: Callable[[], int] | None = None,
    explosion_limit: int = 100,
) -> None:
    for mod in modifiers:
        kind = mod.kind
        if kind == ModifierKind.KEEP_HIGHEST:
            keep_or_drop(results, mod.amount, keep=True, highest=True)
        elif kind == ModifierKind.KEEP_LOWEST:
            keep_or_drop(results, mod.amount, keep=True, highest=False)
        elif kind == ModifierKind.DROP_HIGHEST:
            keep_or_drop(results, mod.amount, keep=False, highest=True)
        elif kind == ModifierKind.DROP_LOWEST:
            keep_or_drop(results, mod.amount, keep=False, highest=False)
        elif kind == ModifierKind.COUNT_SUCCESSES:
            count_successes(results, mod.comparator, mod.target)
        elif kind == ModifierKind.COUNT_FAILURES:
            count_failures(results, mod.comparator, mod.target)
        elif roll_one is None:
            raise FormatError(f"Modifier {mod.code!r} cannot apply here")
        elif kind == ModifierKind.REROLL:
            reroll(results, mod.comparator, mod.target, roll_one)
        else:
            explode(
                results,
                mod.comparator,
                mod.target,
                roll_one,
                once=kind == ModifierKind.EXPLODE_ONCE,
                limit=explosion_limit,
            )
