"""Exceptions and warnings raised by the roll engine."""

from __future__ import annotations


class RollError(Exception):
    """Base class for roll parsing and evaluation failures.

    ``dice`` lists any dice groups already rolled when the failure happened,
    so the caller can still audit them. Parse-time failures carry none.
    """

    def __init__(self, message: str, dice: list | None = None):
        super().__init__(message)
        self.dice = list(dice or [])


class FormatError(RollError):
    """Unbalanced brackets, unresolvable fragments or a malformed dice expression."""


class StateError(RollError):
    """An operation was requested in a state that does not allow it."""


class EvaluationError(RollError):
    """The arithmetic total is not a finite number."""


class MissingDataWarning(UserWarning):
    """An ``@path`` reference had no value in the roll data."""
