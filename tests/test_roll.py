"""Tests for parsing and evaluating whole roll formulas."""

from unittest.mock import patch

import pytest

from chatons.config import Settings
from chatons.dice import EvaluationMode
from chatons.errors import EvaluationError, FormatError, MissingDataWarning, StateError
from chatons.models import DiceTerm, MathTerm, NumericTerm, OperatorTerm, ParentheticalTerm, PoolTerm, StringTerm
from chatons.roll import Roll


def _roll(formula, faces, data=None):
    with patch("chatons.dice.random.randint", side_effect=faces):
        return Roll(formula, data).evaluate()


def _fragments(terms):
    """Every unresolved string term, searched through nested groups."""
    found = []
    for term in terms:
        if isinstance(term, StringTerm):
            found.append(term)
        elif isinstance(term, ParentheticalTerm):
            found += _fragments(term.inner)
        elif isinstance(term, MathTerm):
            for arg in term.arguments:
                found += _fragments(arg.inner)
        elif isinstance(term, PoolTerm):
            for member in term.subterms:
                found += _fragments(member.inner)
    return found


class TestChecks:
    def test_three_dice_under_difficulty(self):
        r = _roll("3D6cs<=4", [2, 5, 4])
        assert r.total == 2
        assert [d.success for d in r.dice[0].results] == [True, False, True]

    def test_comparator_applied_literally(self):
        r = _roll("3D6cs<=10", [2, 7, 10])
        assert r.total == 3

    def test_four_dice_with_advantage(self):
        r = _roll("4D6cs<=8", [1, 2, 3, 9])
        assert r.total == 3

    def test_difficulty_from_roll_data(self):
        r = Roll("@qualites.costaud D6", {"qualites": {"costaud": 4}})
        [term] = r.terms
        assert isinstance(term, DiceTerm)
        assert (term.number, term.faces) == (4, 6)


class TestParsing:
    def test_group_supplies_dice_count(self):
        r = Roll("(2+1)D6")
        [dice] = r.terms
        assert isinstance(dice, DiceTerm)
        assert (dice.number, dice.faces) == (3, 6)

        r.evaluate(mode=EvaluationMode.MINIMIZE)
        assert r.total == 3

    @pytest.mark.parametrize(
        "formula",
        ["(2+1)D6", "d6 + 1", "floor(5/2)d4", "{(1+1)d6, 3}kh", "max(1, (2)d6)", "(2+1)[x]d6 * 2"],
    )
    def test_no_fragments_after_parsing(self, formula):
        assert _fragments(Roll(formula).terms) == []

    def test_rolled_group_supplies_dice_count_at_evaluation(self):
        r = Roll("(1d2)d6")
        assert r.terms[1] == StringTerm(term="d6")

        with patch("chatons.dice.random.randint", side_effect=[2, 5, 6]):
            r.evaluate()
        assert r.total == 11
        assert [d.formula for d in r.dice] == ["1d2", "2d6"]

    def test_constant_groups_fold(self):
        r = Roll("floor(7 / 2) + (1 + 1)")
        assert r.terms == [NumericTerm(number=3), OperatorTerm(operator="+"), NumericTerm(number=2)]

    def test_failing_constant_group_left_for_evaluation(self):
        r = Roll("(1/0) + 1")
        assert isinstance(r.terms[0], ParentheticalTerm)
        assert Roll.validate("(1/0) + 1")
        with pytest.raises(EvaluationError):
            r.evaluate()

    def test_unbalanced_parenthesis(self):
        with pytest.raises(FormatError, match="Unbalanced"):
            Roll("(2+1D6")

    def test_empty_formula(self):
        with pytest.raises(FormatError):
            Roll("")

    def test_empty_group(self):
        with pytest.raises(FormatError, match="Empty"):
            Roll("2 + ()")

    def test_unresolvable_fragment(self):
        with pytest.raises(FormatError, match="abc"):
            Roll("2 + abc")

    def test_adjacent_operands(self):
        with pytest.raises(FormatError, match="Missing operator"):
            Roll("(1)(2)")

    def test_bad_operator_pair(self):
        with pytest.raises(FormatError, match="Unexpected operator"):
            Roll("2 + * 3")

    def test_negative_literal(self):
        r = Roll("2 * -3")
        assert r.terms == [NumericTerm(number=2), OperatorTerm(operator="*"), NumericTerm(number=-3)]
        assert r.evaluate().total == -6

    def test_math_call(self):
        r = Roll("floor(1d6 / 2)")
        [term] = r.terms
        assert isinstance(term, MathTerm)
        assert term.function == "floor"

    def test_empty_argument(self):
        with pytest.raises(FormatError, match="Empty argument"):
            Roll("max(1,,2)")
        with pytest.raises(FormatError, match="Empty argument"):
            Roll("{1d6,,1d6}")

    def test_commas_inside_flavor(self):
        r = Roll("max(1d6[a,,b], 2)").evaluate(mode=EvaluationMode.MAXIMIZE)
        assert r.total == 6

    def test_placeholder_text_rejected(self):
        with pytest.raises(FormatError, match="placeholder"):
            Roll("1 + $$F3$$")
        assert not Roll.validate("$$F0$$")
        assert Roll("1d6[$$F0$$]").terms[0].flavor == "$$F0$$"

    def test_chained_default_modifiers(self):
        r = _roll("4d6khcs>=3", [1, 5, 3, 6])
        assert r.total == 1
        assert [m.code for m in r.dice[0].modifiers] == ["kh", "cs>=3"]

    def test_flavor(self):
        r = Roll("2d6[fire] + 3[bonus]")
        assert r.terms[0].flavor == "fire"
        assert r.terms[2].flavor == "bonus"
        assert r.expression == "2d6[fire] + 3[bonus]"

    def test_validate(self):
        assert Roll.validate("3d6 + 2")
        assert Roll.validate("3d6 +")
        assert Roll.validate("@missing + 1")
        assert not Roll.validate("(3d6")
        assert not Roll.validate("3d6 + abc")

    @pytest.mark.parametrize(
        "formula",
        [
            "4D6cs<=3",
            "(2+1)D6",
            "floor(7/2) + 1d4",
            "{4d6kh3,2d8}kh[best]",
            "-3 * 2d6x",
            "2d6[fire] + 3[cold]",
        ],
    )
    def test_formula_round_trip(self, formula):
        terms = Roll.parse(formula)
        again = Roll.parse(Roll.get_formula(terms))
        assert [t.model_dump() for t in again] == [t.model_dump() for t in terms]


class TestArithmetic:
    def test_precedence(self):
        assert Roll("2 + 3 * 4").evaluate().total == 14
        assert Roll("10 - 2 - 3").evaluate().total == 5
        assert Roll("(2 + 3) * 4").evaluate().total == 20

    def test_dice_in_expression(self):
        r = _roll("2d6 * 2 + 1", [3, 4])
        assert r.total == 15
        assert r.result == "7 * 2 + 1"

    def test_math_functions_with_dice(self):
        r = _roll("floor(7 / 2) + max(1, 2d6)", [5, 6])
        assert r.total == 14
        assert [d.formula for d in r.dice] == ["2d6"]

    def test_dangling_operators_dropped(self):
        r = Roll("+ 2 + 3 -").evaluate()
        assert r.total == 5
        assert r.expression == "2 + 3"

    def test_leading_minus_kept(self):
        r = Roll("-1d4 + 10").evaluate(mode=EvaluationMode.MINIMIZE)
        assert r.total == 9

    def test_missing_data_defaults_to_zero(self):
        assert Roll("@nope + 1").evaluate().total == 1


class TestModifiers:
    def test_keep_highest(self):
        r = _roll("4d6kh3", [1, 6, 3, 5])
        assert r.total == 14
        assert len(r.dice[0].values) == 3

    def test_explode(self):
        r = _roll("2d6x", [6, 2, 3])
        assert r.total == 11
        assert len(r.dice[0].results) == 3

    def test_reroll_ones(self):
        r = _roll("2d6r1", [1, 4, 1])
        assert r.total == 5
        assert r.dice[0].results[0].rerolled

    def test_pool_keeps_best_member(self):
        r = _roll("{4d6kh3, 10}kh", [6, 1, 5, 3])
        assert r.total == 14
        [pool] = r.terms
        assert isinstance(pool, PoolTerm)
        assert [(p.face_value, p.active) for p in pool.results] == [(14, True), (10, False)]
        assert [d.formula for d in r.dice] == ["4d6kh3"]

    def test_pool_counts_successes(self):
        r = _roll("{1d6, 1d6, 1d6}cs>=4", [5, 2, 6])
        assert r.total == 2


class TestEvaluation:
    def test_modes(self):
        assert Roll("3d6 + 2").evaluate(mode=EvaluationMode.MAXIMIZE).total == 20
        assert Roll("3d6 + 2").evaluate(mode="minimize").total == 5

    def test_injected_rng(self, rng):
        assert Roll("3d6").evaluate(rng=rng(1, 2, 3)).total == 6

    def test_evaluate_twice(self):
        r = _roll("1d6", [4])
        with pytest.raises(StateError):
            r.evaluate()
        assert r.total == 4

    def test_nested_dice_roll_first(self):
        r = _roll("1d4 + (1d6)", [6, 3])
        assert r.total == 9
        assert [d.formula for d in r.dice] == ["1d6", "1d4"]

    def test_failure_keeps_rolled_dice(self):
        with patch("chatons.dice.random.randint", side_effect=[4]):
            r = Roll("1d6 / 0")
            with pytest.raises(EvaluationError) as exc:
                r.evaluate()
        assert [d.results[0].face_value for d in exc.value.dice] == [4]
        assert not r.evaluated
        assert r.total is None
        assert len(r.dice) == 1

    def test_unevaluated_state(self):
        r = Roll("1d6")
        assert not r.evaluated
        assert r.total is None
        assert r.result is None
        assert r.dice == []
        assert str(r) == "1d6"


class TestSettings:
    def test_missing_data_kept_fails(self, strict_settings):
        with pytest.raises(FormatError, match="@nope"):
            Roll("@nope + 1", settings=strict_settings)

    def test_missing_data_warns(self):
        with pytest.warns(MissingDataWarning):
            Roll("@nope + 1", settings=Settings(warn_missing_data=True))

    def test_dice_limit(self):
        with pytest.raises(FormatError):
            Roll("6d6", settings=Settings(max_dice=5))


class TestSerialization:
    def test_json_round_trip(self):
        r = _roll("2d6 + @bonus", [3, 5], {"bonus": 2})
        assert r.total == 10

        with patch("chatons.dice.random.randint", side_effect=AssertionError("rolled")):
            restored = Roll.from_json(r.to_json())

        assert restored.evaluated
        assert restored.total == 10
        assert restored.formula == "2d6 + @bonus"
        assert restored.result == r.result
        assert restored.breakdown() == r.breakdown()
        with pytest.raises(StateError):
            restored.evaluate()

    def test_dict_round_trip(self):
        r = _roll("{1d6, 1d6}kh + (1d4)", [2, 5, 3])
        restored = Roll.from_dict(r.to_dict())
        assert restored.total == r.total == 8
        assert [d.formula for d in restored.dice] == [d.formula for d in r.dice]

    def test_str(self):
        r = _roll("1d6 + 1", [5])
        assert str(r) == "1d6 + 1 = 6"
