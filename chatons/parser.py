"""Formula parsing: roll formula text to an ordered list of terms.

Parsing runs in passes over the substituted formula: parenthetical groups
and math calls are split out, then dice pools, then the remaining free text
is cut on arithmetic operators and each fragment is classified. Every
bracketed group is parsed recursively as it closes, so a malformed formula
fails here, before any die is rolled. Groups that roll nothing are then
folded into numbers, so their value can complete a dice group.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from chatons.arithmetic import MATH_FUNCTIONS
from chatons.classifier import classify_term
from chatons.config import Settings, settings as default_settings
from chatons.errors import EvaluationError, FormatError
from chatons.evaluator import evaluate_terms, simplify_terms, term_text
from chatons.grouping import Group, GroupSyntax, split_args, split_group
from chatons.models import (
    MathTerm,
    NumericTerm,
    OperatorTerm,
    ParentheticalTerm,
    PoolTerm,
    StringTerm,
)
from chatons.modifiers import parse_modifiers
from chatons.operators import split_operators
from chatons.substitution import replace_formula_data

logger = logging.getLogger(__name__)

# Whitespace outside of [flavor] annotations
_WHITESPACE_RE = re.compile(r"\s+(?![^\[]*\])")

PARENTHESES = GroupSyntax(
    open_symbol="(",
    close_symbol=")",
    opaque=("{", "}"),
    functions=frozenset(MATH_FUNCTIONS),
)
POOLS = GroupSyntax(
    open_symbol="{",
    close_symbol="}",
    opaque=("(", ")"),
    suffix=re.compile(r"[A-Za-z0-9<=>]*"),
)


def parse_formula(
    formula: str,
    data: Mapping[str, Any] | None = None,
    settings: Settings | None = None,
) -> list:
    """Parse formula into terms after substituting ``@`` references from data.

    Raises:
        FormatError: If the formula is empty, unbalanced, or holds a fragment
            that can never resolve to a number or a dice group.
    """
    settings = settings or default_settings
    replaced = replace_formula_data(
        formula,
        data,
        missing=settings.missing_data_default,
        warn=settings.warn_missing_data,
    )
    terms = parse_expression(replaced, settings)
    check_resolvable(terms, settings)
    terms = resolve_terms(terms, settings)
    logger.debug("Parsed %r into %d terms", formula, len(terms))
    return terms


def parse_expression(expression: str, settings: Settings | None = None) -> list:
    """Parse already-substituted text; fragments may remain unresolved."""
    settings = settings or default_settings
    text = _WHITESPACE_RE.sub("", expression)

    terms = split_group(text, PARENTHESES, lambda g: _close_parentheses(g, settings))

    pooled: list = []
    for term in terms:
        if isinstance(term, str):
            pooled.extend(split_group(term, POOLS, lambda g: _close_pool(g, settings)))
        else:
            pooled.append(term)

    split = split_operators(pooled)
    return [
        classify_term(
            term,
            intermediate=True,
            prior=split[i - 1] if i > 0 else None,
            next_term=split[i + 1] if i + 1 < len(split) else None,
            settings=settings,
        )
        for i, term in enumerate(split)
    ]


def check_resolvable(terms: list, settings: Settings | None = None) -> None:
    """Dry-run simplification with every group standing in as a number.

    Raises:
        FormatError: If some fragment would stay unresolved at evaluation.
    """
    stand_ins = []
    for term in terms:
        if isinstance(term, ParentheticalTerm):
            check_resolvable(term.inner, settings)
        elif isinstance(term, MathTerm):
            for arg in term.arguments:
                check_resolvable(arg.inner, settings)
        elif isinstance(term, PoolTerm):
            for member in term.subterms:
                check_resolvable(member.inner, settings)
        else:
            stand_ins.append(term)
            continue
        stand_ins.append(NumericTerm(number=1, flavor=term.flavor))

    if not simplify_terms(stand_ins, settings):
        raise FormatError("Formula has no terms")


_GROUPS = (ParentheticalTerm, MathTerm, PoolTerm)


def resolve_terms(terms: list, settings: Settings | None = None) -> list:
    """Fold groups that roll nothing into numbers and classify what they complete.

    ``(2+1)d6`` becomes a 3d6 dice group here. A fragment next to a group
    that holds dice, as in ``(1d2)d6``, stays a string until that group is
    rolled.
    """
    resolved = []
    for term in terms:
        if isinstance(term, ParentheticalTerm):
            term.inner = resolve_terms(term.inner, settings)
        elif isinstance(term, MathTerm):
            for arg in term.arguments:
                arg.inner = resolve_terms(arg.inner, settings)
        elif isinstance(term, PoolTerm):
            for member in term.subterms:
                member.inner = resolve_terms(member.inner, settings)
        resolved.append(_fold_constant(term, settings))
    return _classify_fragments(resolved, settings)


def _is_constant(term) -> bool:
    if isinstance(term, ParentheticalTerm):
        groups = [term]
    elif isinstance(term, MathTerm):
        groups = term.arguments
    else:
        return False
    return all(
        isinstance(t, (NumericTerm, OperatorTerm)) for group in groups for t in group.inner
    )


def _fold_constant(term, settings: Settings | None):
    if not _is_constant(term):
        return term
    try:
        total = evaluate_terms([term], settings=settings).total
    except EvaluationError as e:
        # Left for evaluation to report, e.g. (1/0)
        logger.debug("Not folding %r: %s", term.formula, e)
        return term
    return NumericTerm(number=total, flavor=term.flavor)


def _joins(prior, term) -> bool:
    pair = (prior, term)
    if prior is None or not any(isinstance(t, StringTerm) for t in pair):
        return False
    return not any(isinstance(t, (OperatorTerm,) + _GROUPS) for t in pair)


def _classify_fragments(terms: list, settings: Settings | None) -> list:
    merged: list = []
    for term in terms:
        prior = merged[-1] if merged else None
        if _joins(prior, term):
            merged[-1] = StringTerm(
                term=term_text(prior) + term_text(term), flavor=term.flavor or prior.flavor
            )
        else:
            merged.append(term)

    classified = []
    for i, term in enumerate(merged):
        prior = merged[i - 1] if i > 0 else None
        next_term = merged[i + 1] if i + 1 < len(merged) else None
        if (
            isinstance(term, StringTerm)
            and not isinstance(prior, _GROUPS)
            and not isinstance(next_term, _GROUPS)
        ):
            final = classify_term(term.term, intermediate=False, settings=settings)
            if term.flavor and not final.flavor:
                final.flavor = term.flavor
            term = final
        classified.append(term)
    return classified


def is_valid(expression: str, settings: Settings | None = None) -> bool:
    try:
        check_resolvable(parse_expression(expression, settings), settings)
    except FormatError:
        return False
    return True


def _close_parentheses(group: Group, settings: Settings) -> list:
    if not group.content:
        raise FormatError("Empty parentheses")
    if group.prefix:
        args = split_args(group.content, lambda t: is_valid(t, settings))
        return [
            MathTerm(
                function=group.prefix,
                arguments=[
                    ParentheticalTerm(inner=parse_expression(arg, settings)) for arg in args
                ],
                flavor=group.flavor,
            )
        ]
    return [
        ParentheticalTerm(
            inner=parse_expression(group.content, settings), flavor=group.flavor
        )
    ]


def _close_pool(group: Group, settings: Settings) -> list:
    if not group.content:
        raise FormatError("Empty dice pool")
    members = split_args(group.content, lambda t: is_valid(t, settings))
    return [
        PoolTerm(
            subterms=[
                ParentheticalTerm(inner=parse_expression(member, settings))
                for member in members
            ],
            modifiers=parse_modifiers(group.suffix, pool=True),
            flavor=group.flavor,
        )
    ]
