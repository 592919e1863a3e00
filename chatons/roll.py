"""The Roll: a formula bound to its roll data, evaluated at most once."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from chatons.config import Settings, settings as default_settings
from chatons.dice import EvaluationMode
from chatons.errors import FormatError, RollError, StateError
from chatons.evaluator import evaluate_terms
from chatons.models import DiceTerm, RollData, format_number, get_formula
from chatons.parser import parse_formula

logger = logging.getLogger(__name__)


class Roll:
    """Parse and evaluate a roll formula such as ``"2d6kh + @prof"``.

    Parsing happens on construction, so a malformed formula raises
    FormatError before anything is rolled.
    """

    def __init__(
        self,
        formula: str,
        data: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.data = dict(data or {})
        self._formula = formula
        self.terms = self.parse(formula, self.data, self.settings)
        self._nested_dice: list[DiceTerm] = []
        self._total: float | None = None
        self._evaluated = False

    @staticmethod
    def parse(
        formula: str,
        data: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
    ) -> list:
        return parse_formula(formula, data, settings)

    @staticmethod
    def get_formula(terms: list) -> str:
        return get_formula(terms)

    @classmethod
    def validate(cls, formula: str, settings: Settings | None = None) -> bool:
        """Whether formula parses; references to data count as missing."""
        try:
            cls.parse(formula, {}, settings)
        except FormatError:
            return False
        return True

    # --- State ---

    @property
    def formula(self) -> str:
        return self._formula

    @property
    def expression(self) -> str:
        """The formula rebuilt from the current terms."""
        return get_formula(self.terms)

    @property
    def evaluated(self) -> bool:
        return self._evaluated

    @property
    def total(self) -> float | None:
        return self._total

    @property
    def result(self) -> str | None:
        """The arithmetic that produced the total, e.g. ``"7 + 2"``."""
        if not self._evaluated:
            return None
        parts = []
        for term in self.terms:
            total = term.total
            parts.append(format_number(total) if isinstance(total, (int, float)) else str(total))
        return " ".join(parts)

    @property
    def dice(self) -> list[DiceTerm]:
        """Every rolled dice group, nested groups first."""
        return self._nested_dice + [
            t for t in self.terms if isinstance(t, DiceTerm) and t.evaluated
        ]

    def breakdown(self) -> list[dict[str, Any]]:
        return [r.breakdown() for group in self.dice for r in group.results]

    # --- Evaluation ---

    def evaluate(self, mode: EvaluationMode = EvaluationMode.RANDOM, rng=None) -> Roll:
        """Roll the dice and compute the total.

        Raises:
            StateError: If the roll was already evaluated.
            FormatError: If a fragment only proves unresolvable now.
            EvaluationError: If the total is not a finite number. The dice
                rolled so far stay available on ``dice``.
        """
        if self._evaluated:
            raise StateError(f"Roll {self._formula!r} has already been evaluated")

        terms = [t.model_copy(deep=True) for t in self.terms]
        try:
            evaluation = evaluate_terms(terms, EvaluationMode(mode), rng, self.settings)
        except RollError as e:
            self._nested_dice = list(e.dice)
            logger.warning("Roll %r failed: %s", self._formula, e)
            raise

        self.terms = evaluation.terms
        self._nested_dice = evaluation.nested_dice
        self._total = evaluation.total
        self._evaluated = True
        logger.debug("Rolled %r: %s = %s", self._formula, self.result, format_number(self._total))
        return self

    # --- Serialization ---

    def to_data(self) -> RollData:
        return RollData(
            formula=self._formula,
            data=self.data,
            terms=self.terms,
            nested_dice=self._nested_dice,
            total=self._total,
            evaluated=self._evaluated,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.to_data().model_dump(mode="json")

    def to_json(self, indent: int | None = None) -> str:
        return self.to_data().model_dump_json(indent=indent)

    @classmethod
    def from_data(cls, record: RollData, settings: Settings | None = None) -> Roll:
        """Rebuild a roll from its serialized form without rolling anything."""
        roll = cls(record.formula, record.data, settings)
        roll.terms = list(record.terms)
        roll._nested_dice = list(record.nested_dice)
        roll._total = record.total
        roll._evaluated = record.evaluated
        return roll

    @classmethod
    def from_dict(cls, data: dict[str, Any], settings: Settings | None = None) -> Roll:
        return cls.from_data(RollData.model_validate(data), settings)

    @classmethod
    def from_json(cls, data: str, settings: Settings | None = None) -> Roll:
        return cls.from_data(RollData.model_validate_json(data), settings)

    def __str__(self) -> str:
        if not self._evaluated:
            return self._formula
        return f"{self._formula} = {format_number(self._total)}"

    def __repr__(self) -> str:
        return f"Roll(formula={self._formula!r}, total={self._total!r})"
