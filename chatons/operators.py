"""Split free formula text on arithmetic operators."""

from __future__ import annotations

import re

from chatons.models import OperatorTerm

OPERATORS = ("+", "-", "*", "/")

# An operator symbol outside of any [flavor] annotation
_OPERATOR_RE = re.compile(r"([+\-*/])(?![^\[]*\])")
_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?(?:\[[^\]]+\])?$")


def split_operators(terms: list) -> list:
    """Break string fragments into operand strings and OperatorTerms.

    Whether an operator is unary depends on position: one found where an
    operand is expected (start of the expression, or straight after another
    operator) is a sign. A unary minus directly before a numeric literal is
    folded into that literal.
    """
    split: list = []
    expect_operand = True
    for term in terms:
        if not isinstance(term, str):
            split.append(term)
            expect_operand = isinstance(term, OperatorTerm)
            continue

        pieces = [p.strip() for p in _OPERATOR_RE.split(term)]
        pieces = [p for p in pieces if p]
        i = 0
        while i < len(pieces):
            piece = pieces[i]
            if piece not in OPERATORS:
                split.append(piece)
                expect_operand = False
            elif (
                expect_operand
                and piece == "-"
                and i + 1 < len(pieces)
                and _NUMBER_RE.match(pieces[i + 1])
            ):
                split.append("-" + pieces[i + 1])
                expect_operand = False
                i += 1
            else:
                split.append(OperatorTerm(operator=piece))
                expect_operand = True
            i += 1
    return split
