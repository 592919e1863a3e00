"""Pydantic models for parsed roll terms, modifiers and die results."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, Field


def format_number(value: float) -> str:
    """Render a number the way it appears in a formula (no trailing ``.0``)."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(value)


def _flavor_suffix(flavor: str | None) -> str:
    return f"[{flavor}]" if flavor else ""


# --- Die results and modifiers ---


class DieResult(BaseModel):
    face_value: int | float
    active: bool = True
    success: bool | None = None
    count: int | None = None  # contribution to a success or failure count
    rerolled: bool = False
    exploded: bool = False

    def breakdown(self) -> dict[str, Any]:
        return self.model_dump(include={"face_value", "success", "active"})


class ModifierKind(str, Enum):
    KEEP_HIGHEST = "keep_highest"
    KEEP_LOWEST = "keep_lowest"
    DROP_HIGHEST = "drop_highest"
    DROP_LOWEST = "drop_lowest"
    REROLL = "reroll"
    EXPLODE = "explode"
    EXPLODE_ONCE = "explode_once"
    COUNT_SUCCESSES = "count_successes"
    COUNT_FAILURES = "count_failures"


Comparator = Literal["<", "<=", "=", ">=", ">"]


class Modifier(BaseModel):
    kind: ModifierKind
    code: str  # as written, e.g. "kh2" or "cs<=3"
    amount: int | None = None
    comparator: Comparator | None = None
    target: int | None = None


def _results_total(results: list[DieResult]) -> float:
    return sum(
        r.count if r.count is not None else r.face_value
        for r in results
        if r.active
    )


# --- Terms ---


class NumericTerm(BaseModel):
    type: Literal["numeric"] = "numeric"
    number: float
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = False

    @property
    def total(self) -> float:
        return self.number

    @property
    def formula(self) -> str:
        return format_number(self.number) + _flavor_suffix(self.flavor)


class OperatorTerm(BaseModel):
    type: Literal["operator"] = "operator"
    operator: Literal["+", "-", "*", "/"]
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = False

    @property
    def total(self) -> str:
        return self.operator

    @property
    def formula(self) -> str:
        return f" {self.operator} "


class DiceTerm(BaseModel):
    """A group of same-faced dice rolled together with shared modifiers."""

    type: Literal["dice"] = "dice"
    number: int
    faces: int
    modifiers: list[Modifier] = Field(default_factory=list)
    results: list[DieResult] = Field(default_factory=list)
    evaluated: bool = False
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = False

    @property
    def total(self) -> float | None:
        if not self.evaluated:
            return None
        return _results_total(self.results)

    @property
    def values(self) -> list[int | float]:
        return [r.face_value for r in self.results if r.active]

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.active and r.success)

    @property
    def formula(self) -> str:
        mods = "".join(m.code for m in self.modifiers)
        return f"{self.number}d{self.faces}{mods}{_flavor_suffix(self.flavor)}"


class ParentheticalTerm(BaseModel):
    type: Literal["parenthetical"] = "parenthetical"
    inner: list[Term] = Field(default_factory=list)
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = True

    @property
    def expression(self) -> str:
        return get_formula(self.inner)

    @property
    def formula(self) -> str:
        return f"({self.expression}){_flavor_suffix(self.flavor)}"


class MathTerm(BaseModel):
    type: Literal["math"] = "math"
    function: str
    arguments: list[ParentheticalTerm] = Field(default_factory=list)
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = True

    @property
    def formula(self) -> str:
        args = ", ".join(a.expression for a in self.arguments)
        return f"{self.function}({args}){_flavor_suffix(self.flavor)}"


class PoolTerm(BaseModel):
    """A braced set of sub-expressions whose totals are treated as dice."""

    type: Literal["pool"] = "pool"
    subterms: list[ParentheticalTerm] = Field(default_factory=list)
    modifiers: list[Modifier] = Field(default_factory=list)
    results: list[DieResult] = Field(default_factory=list)
    evaluated: bool = False
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = True

    @property
    def total(self) -> float | None:
        if not self.evaluated:
            return None
        return _results_total(self.results)

    @property
    def formula(self) -> str:
        members = ",".join(s.expression for s in self.subterms)
        mods = "".join(m.code for m in self.modifiers)
        return f"{{{members}}}{mods}{_flavor_suffix(self.flavor)}"


class StringTerm(BaseModel):
    """An unresolved fragment; never survives into an evaluated roll."""

    type: Literal["string"] = "string"
    term: str
    flavor: str | None = None

    is_intermediate: ClassVar[bool] = False

    @property
    def total(self) -> str:
        return self.term

    @property
    def formula(self) -> str:
        return self.term + _flavor_suffix(self.flavor)


Term = Annotated[
    Union[
        NumericTerm,
        OperatorTerm,
        DiceTerm,
        PoolTerm,
        MathTerm,
        ParentheticalTerm,
        StringTerm,
    ],
    Field(discriminator="type"),
]

ParentheticalTerm.model_rebuild()
MathTerm.model_rebuild()
PoolTerm.model_rebuild()


def get_formula(terms: list) -> str:
    """Rebuild formula text from a term sequence."""
    return "".join(t.formula for t in terms).strip()


# --- Serialized roll ---


class RollData(BaseModel):
    formula: str
    data: dict[str, Any] = Field(default_factory=dict)
    terms: list[Term] = Field(default_factory=list)
    nested_dice: list[DiceTerm] = Field(default_factory=list)
    total: float | None = None
    evaluated: bool = False


# --- Checks ---


class CheckMode(str, Enum):
    STANDARD = "standard"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"


class OutcomeState(str, Enum):
    PRESENTED = "presented"
    AMENDED = "amended"  # the single reroll has been used


class RollOutcome(BaseModel):
    """A success-counting check as shown to the player."""

    label: str
    difficulty: int
    formula: str
    mode: CheckMode = CheckMode.STANDARD
    baseline: int  # dice rolled; that many successes are needed to pass
    dice: list[DieResult] = Field(default_factory=list)
    success_count: int = 0
    reroll_available: bool = False
    state: OutcomeState = OutcomeState.PRESENTED

    @property
    def passed(self) -> bool:
        return self.success_count >= self.baseline

    def breakdown(self) -> list[dict[str, Any]]:
        return [d.breakdown() for d in self.dice]


# --- Character sheet ---


class Qualities(BaseModel):
    costaud: int = 0
    malin: int = 0
    mignon: int = 0


class Gauge(BaseModel):
    value: int = 0
    max: int = 0


class Experience(BaseModel):
    actuelle: int = 0
    totale: int = 0


class Talent(BaseModel):
    checked: bool = False
    qualite: str = ""  # one of the quality names, or "" when unassigned


# Field names double as roll data paths, e.g. "@qualites.costaud"
class Chaton(BaseModel):
    name: str
    don: str = ""
    enfance: str = ""
    caractere: str = ""
    qualites: Qualities = Field(default_factory=Qualities)
    coeur: Gauge = Field(default_factory=Gauge)
    amitie: Gauge = Field(default_factory=Gauge)
    experience: Experience = Field(default_factory=Experience)
    talents: dict[str, Talent] = Field(default_factory=dict)
