"""Restricted arithmetic evaluator.

Evaluates ``+ - * /``, parentheses, numbers and calls to a fixed table of
math functions. Nothing else is reachable from an expression.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable

from chatons.errors import EvaluationError


def _round_half_up(x: float) -> float:
    return math.floor(x + 0.5)


def _sign(x: float) -> float:
    return float((x > 0) - (x < 0))


def _cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1 / 3), x)


MATH_FUNCTIONS: dict[str, Callable[..., float]] = {
    "abs": abs,
    "ceil": math.ceil,
    "floor": math.floor,
    "round": _round_half_up,
    "trunc": math.trunc,
    "sign": _sign,
    "sqrt": math.sqrt,
    "cbrt": _cbrt,
    "exp": math.exp,
    "log": math.log,
    "log2": math.log2,
    "log10": math.log10,
    "min": min,
    "max": max,
    "pow": math.pow,
    "hypot": math.hypot,
}

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?(?:[eE][+-]?\d+)?)|(?P<name>[A-Za-z_]\w*)|(?P<symbol>[-+*/(),]))"
)


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        m = _TOKEN_RE.match(expression, pos)
        if not m:
            raise EvaluationError(f"Unexpected character in {expression!r} at {pos}")
        kind = m.lastgroup
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


def call_function(name: str, args: list[float]) -> float:
    """Call a whitelisted math function."""
    fn = MATH_FUNCTIONS.get(name)
    if fn is None:
        raise EvaluationError(f"Unknown function {name!r}")
    try:
        return float(fn(*args))
    except (TypeError, ValueError, OverflowError, ZeroDivisionError) as e:
        raise EvaluationError(f"{name}({', '.join(map(str, args))}) failed: {e}") from e


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _at(self, *symbols: str) -> bool:
        token = self._peek()
        return token is not None and token[0] == "symbol" and token[1] in symbols

    def _take(self, value: str | None = None) -> tuple[str, str]:
        token = self._peek()
        if token is None or (value is not None and token[1] != value):
            expected = repr(value) if value else "a value"
            raise EvaluationError(f"Expected {expected} in {self.expression!r}")
        self.pos += 1
        return token

    def parse(self) -> float:
        value = self._expr()
        if self._peek() is not None:
            raise EvaluationError(
                f"Unexpected {self._peek()[1]!r} in {self.expression!r}"
            )
        return value

    def _expr(self) -> float:
        value = self._term()
        while self._at("+", "-"):
            token = self._take()
            rhs = self._term()
            value = value + rhs if token[1] == "+" else value - rhs
        return value

    def _term(self) -> float:
        value = self._unary()
        while self._at("*", "/"):
            token = self._take()
            rhs = self._unary()
            if token[1] == "*":
                value = value * rhs
            elif rhs == 0:
                raise EvaluationError(f"Division by zero in {self.expression!r}")
            else:
                value = value / rhs
        return value

    def _unary(self) -> float:
        if self._at("+", "-"):
            token = self._take()
            value = self._unary()
            return -value if token[1] == "-" else value
        return self._primary()

    def _primary(self) -> float:
        kind, text = self._take()
        if kind == "number":
            return float(text)
        if kind == "name":
            self._take("(")
            args = []
            if not self._at(")"):
                args.append(self._expr())
                while self._at(","):
                    self._take()
                    args.append(self._expr())
            self._take(")")
            return call_function(text, args)
        if text == "(":
            value = self._expr()
            self._take(")")
            return value
        raise EvaluationError(f"Unexpected {text!r} in {self.expression!r}")


def safe_eval(expression: str) -> float:
    """Evaluate an arithmetic expression, failing unless the result is finite.

    Raises:
        EvaluationError: On malformed input, unknown functions, division by
            zero or a non-finite result.
    """
    try:
        value = _Parser(expression).parse()
    except OverflowError as e:
        raise EvaluationError(f"Overflow evaluating {expression!r}") from e
    if not math.isfinite(value):
        raise EvaluationError(f"{expression!r} did not produce a finite number")
    return value
