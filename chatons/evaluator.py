"""Term evaluation.

Evaluation runs in a fixed order: nested groups are resolved first (their
values may still complete a neighbouring dice expression such as ``(2+1)d6``),
leftover fragments are merged and reclassified, the remaining dice groups
are rolled left to right, and only then is the arithmetic total computed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from chatons.arithmetic import call_function, safe_eval
from chatons.classifier import classify_term
from chatons.config import Settings, settings as default_settings
from chatons.dice import EvaluationMode, roll_dice_term
from chatons.errors import FormatError, RollError
from chatons.models import (
    DiceTerm,
    DieResult,
    MathTerm,
    NumericTerm,
    OperatorTerm,
    ParentheticalTerm,
    PoolTerm,
    StringTerm,
    format_number,
)
from chatons.modifiers import apply_modifiers

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    terms: list
    total: float
    nested_dice: list[DiceTerm] = field(default_factory=list)

    @property
    def dice(self) -> list[DiceTerm]:
        return self.nested_dice + [t for t in self.terms if isinstance(t, DiceTerm)]


def term_text(term) -> str:
    """The text a term contributes to a merged fragment or the arithmetic."""
    if isinstance(term, StringTerm):
        return term.term
    if isinstance(term, OperatorTerm):
        return term.operator
    total = getattr(term, "total", None)
    if isinstance(total, (int, float)):
        return format_number(total)
    return term.formula


def simplify_terms(terms: list, settings: Settings | None = None) -> list:
    """Merge string fragments with their neighbours and classify them for good.

    A dangling operator at either end is dropped, except a leading minus.

    Raises:
        FormatError: If a fragment still cannot be classified, or if two
            operands or two binary operators end up side by side.
    """
    merged: list = []
    for term in terms:
        prior = merged[-1] if merged else None
        if not isinstance(term, OperatorTerm) and isinstance(prior, StringTerm):
            merged[-1] = StringTerm(
                term=prior.term + term_text(term), flavor=prior.flavor or term.flavor
            )
        elif (
            prior is not None
            and not isinstance(prior, OperatorTerm)
            and isinstance(term, StringTerm)
        ):
            merged[-1] = StringTerm(
                term=term_text(prior) + term.term, flavor=term.flavor or prior.flavor
            )
        else:
            merged.append(term)

    simplified = []
    for term in merged:
        if isinstance(term, StringTerm):
            classified = classify_term(term.term, intermediate=False, settings=settings)
            if isinstance(classified, StringTerm):
                raise FormatError(f"Unresolved term {term.term!r}")
            if term.flavor and not classified.flavor:
                classified.flavor = term.flavor
            term = classified
        simplified.append(term)

    if simplified and isinstance(simplified[0], OperatorTerm) and simplified[0].operator != "-":
        simplified.pop(0)
    if simplified and isinstance(simplified[-1], OperatorTerm):
        simplified.pop()

    for prior, term in zip(simplified, simplified[1:]):
        prior_operator = isinstance(prior, OperatorTerm)
        if not prior_operator and not isinstance(term, OperatorTerm):
            raise FormatError(f"Missing operator between {prior.formula!r} and {term.formula!r}")
        if prior_operator and isinstance(term, OperatorTerm) and term.operator not in ("+", "-"):
            raise FormatError(f"Unexpected operator {term.operator!r}")
    return simplified


def _face(total: float) -> int | float:
    return int(total) if float(total).is_integer() else total


def evaluate_pool(
    term: PoolTerm,
    nested_dice: list[DiceTerm],
    mode: EvaluationMode = EvaluationMode.RANDOM,
    rng=None,
    settings: Settings | None = None,
) -> PoolTerm:
    """Evaluate each pool member; their totals become the pool's results."""
    results = []
    for member in term.subterms:
        inner = evaluate_terms(member.inner, mode, rng, settings)
        nested_dice.extend(inner.dice)
        results.append(DieResult(face_value=_face(inner.total)))
    term.results = results
    apply_modifiers(term.results, term.modifiers)
    term.evaluated = True
    return term


def evaluate_terms(
    terms: list,
    mode: EvaluationMode = EvaluationMode.RANDOM,
    rng=None,
    settings: Settings | None = None,
) -> Evaluation:
    """Evaluate a parsed term list, returning the resolved terms and total.

    Groups are replaced by numeric terms in a new list; dice groups and pools
    found along the way are rolled in place.

    Raises:
        FormatError: If a fragment cannot be resolved once groups are known.
        EvaluationError: If the arithmetic total is not a finite number.

    Either error carries every die rolled before the failure in ``dice``.
    """
    settings = settings or default_settings
    nested_dice: list[DiceTerm] = []
    resolved: list = []
    try:
        for term in terms:
            if isinstance(term, ParentheticalTerm):
                inner = evaluate_terms(term.inner, mode, rng, settings)
                nested_dice.extend(inner.dice)
                term = NumericTerm(number=inner.total, flavor=term.flavor)
            elif isinstance(term, MathTerm):
                args = []
                for arg in term.arguments:
                    inner = evaluate_terms(arg.inner, mode, rng, settings)
                    nested_dice.extend(inner.dice)
                    args.append(inner.total)
                term = NumericTerm(
                    number=call_function(term.function, args), flavor=term.flavor
                )
            elif isinstance(term, PoolTerm) and not term.evaluated:
                evaluate_pool(term, nested_dice, mode, rng, settings)
            resolved.append(term)

        resolved = simplify_terms(resolved, settings)
        if not resolved:
            raise FormatError("Formula has no terms to evaluate")

        for term in resolved:
            if isinstance(term, DiceTerm) and not term.evaluated:
                roll_dice_term(term, mode, rng, settings)

        expression = " ".join(term_text(t) for t in resolved)
        total = safe_eval(expression)
    except RollError as e:
        rolled = [t for t in resolved if isinstance(t, DiceTerm) and t.evaluated]
        e.dice = nested_dice + e.dice + rolled
        raise

    logger.debug("Evaluated %r = %s", expression, format_number(total))
    return Evaluation(terms=resolved, total=total, nested_dice=nested_dice)
