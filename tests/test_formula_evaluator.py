"""
Tests for the Expression Evaluator.

Validates that:
1. Arithmetic follows standard precedence with IEEE division
2. Every registered function evaluates as documented
3. if() is lazy and context functions read the EvaluationContext
4. Failures surface as EvaluationError (never a syntax error)
5. The tagged value coercion table is applied consistently
"""

import math

import pytest

from scorekeeper.formula import (
    CircularReferenceError,
    EvaluationContext,
    EvaluationError,
    FormulaEvaluator,
    FormulaValue,
    evaluate_formula,
)
from scorekeeper.formula.evaluation import divide, power, round_half_up
from scorekeeper.formula.evaluation.functions import NUMERIC_FUNCTIONS


@pytest.fixture
def evaluator() -> FormulaEvaluator:
    return FormulaEvaluator(max_depth=8)


def ev(evaluator: FormulaEvaluator, formula: str, **context) -> float:
    return evaluator.evaluate(formula, EvaluationContext(**context))


class TestArithmetic:
    """Operators and precedence."""

    @pytest.mark.parametrize("formula,expected", [
        ("1 + 2 * 3", 7.0),
        ("(1 + 2) * 3", 9.0),
        ("10 - 4 - 3", 3.0),
        ("10 / 4", 2.5),
        ("2 ^ 3 ^ 2", 512.0),
        ("-2 ^ 2", -4.0),
        ("2 ^ -1", 0.5),
        ("-(3 - 5)", 2.0),
        ("+4", 4.0),
        ("2 * -3", -6.0),
        ("1e3 + 1", 1001.0),
        ("2.5e-1 * 4", 1.0),
    ])
    def test_expressions(self, evaluator, formula, expected):
        assert ev(evaluator, formula) == expected

    def test_division_by_zero_is_infinite(self, evaluator):
        """x/0 is +/-inf, never an error."""
        assert ev(evaluator, "1 / 0") == math.inf
        assert ev(evaluator, "-1 / 0") == -math.inf
        assert ev(evaluator, "{A} / 0", totals={"A": -3}) == -math.inf

    def test_zero_over_zero_is_nan(self, evaluator):
        assert math.isnan(ev(evaluator, "0 / 0"))

    def test_power_edge_cases(self, evaluator):
        assert ev(evaluator, "0 ^ -1") == math.inf
        assert math.isnan(ev(evaluator, "(0 - 8) ^ 0.5"))
        assert ev(evaluator, "10 ^ 400") == math.inf

    def test_helpers_directly(self):
        assert divide(6, 3) == 2
        assert divide(5, -0.0) == -math.inf
        assert power(2, 10) == 1024
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(1.25, 1) == 1.3
        assert round_half_up(2.5, 400) == 2.5
        assert round_half_up(1234, -400) == 0.0
        assert round_half_up(1e300, 20) == 1e300


class TestConstants:
    """A bare number always evaluates to itself."""

    def test_literal_five_ignores_context(self, evaluator):
        context = EvaluationContext(totals={"5": 100.0, "total": 7.0}, round_index=9)
        assert evaluator.evaluate("5", context) == 5.0

    def test_signed_constant(self, evaluator):
        assert ev(evaluator, "-2.5") == -2.5


class TestReferences:
    """Context without a resolver reads totals by key."""

    def test_reference_reads_totals(self, evaluator):
        assert ev(evaluator, "{Territories} * 2", totals={"Territories": 5.0}) == 10.0

    def test_missing_reference_is_zero(self, evaluator):
        assert ev(evaluator, "{Missing} + 1", totals={"A": 2.0}) == 1.0

    def test_total_is_grand_total(self, evaluator):
        assert ev(evaluator, "{total} / 2", totals={"a": 4.0, "b": 6.0}) == 5.0

    def test_total_key_wins_over_builtin(self, evaluator):
        assert ev(evaluator, "{total}", totals={"total": 3.0, "b": 6.0}) == 3.0

    def test_category_lookup_hook_is_used(self, evaluator):
        calls = []

        def lookup(category_id, context):
            calls.append(category_id)
            return 42.0 if category_id == "hooked" else None

        context = EvaluationContext(totals={"plain": 1.0}, category_lookup=lookup)
        assert evaluator.evaluate("{hooked} + {plain}", context) == 43.0
        assert calls == ["hooked", "plain"]


class TestFunctions:
    """Numeric, context and lazy functions."""

    @pytest.mark.parametrize("formula,expected", [
        ("max(1, 5, 3)", 5.0),
        ("min(4, -2, 9)", -2.0),
        ("sum(1, 2, 3)", 6.0),
        ("avg(2, 4)", 3.0),
        ("abs(-3)", 3.0),
        ("floor(2.7)", 2.0),
        ("floor(-2.5)", -3.0),
        ("ceil(2.1)", 3.0),
        ("round(2.5)", 3.0),
        ("round(-2.5)", -2.0),
        ("round(3.14159, 2)", 3.14),
        ("round(1.25, 1)", 1.3),
        ("MAX(1, 2)", 2.0),
    ])
    def test_numeric_functions(self, evaluator, formula, expected):
        assert ev(evaluator, formula) == pytest.approx(expected)

    @pytest.mark.parametrize("formula,expected", [
        ("round(2.5, 400)", 2.5),
        ("round(1234, -400)", 0.0),
        ("round(1234.5, -2)", 1200.0),
        ("round(1e300, 300)", 1e300),
    ])
    def test_round_clamps_extreme_decimals(self, evaluator, formula, expected):
        assert ev(evaluator, formula) == pytest.approx(expected)

    def test_sum_overflow_follows_ieee(self, evaluator):
        assert ev(evaluator, "sum(1e308, 1e308)") == math.inf
        assert ev(evaluator, "avg(1e308, 1e308)") == math.inf
        assert math.isnan(ev(evaluator, "sum(1 / 0, -1 / 0)"))

    def test_round_without_arguments_is_round_index(self, evaluator):
        assert ev(evaluator, "round() * 10", round_index=3) == 30.0

    def test_round_rejects_non_finite_decimals(self, evaluator):
        with pytest.raises(EvaluationError, match="decimals must be finite"):
            ev(evaluator, "round(2.5, 1 / 0)")

    def test_phase(self, evaluator):
        assert ev(evaluator, "if(phase(), 1, 2)", phase_active=True) == 1.0
        assert ev(evaluator, "if(phase(), 1, 2)", phase_active=False) == 2.0

    def test_if_picks_branch(self, evaluator):
        assert ev(evaluator, "if({A} - 5, 10, 20)", totals={"A": 5.0}) == 20.0
        assert ev(evaluator, "if({A}, 10, 20)", totals={"A": -1.0}) == 10.0

    def test_if_is_lazy(self, evaluator):
        """The branch not taken is never evaluated."""
        assert ev(evaluator, "if(1, 10, median(1))") == 10.0
        with pytest.raises(EvaluationError, match="Unknown function 'median'"):
            ev(evaluator, "if(0, 10, median(1))")

    def test_state_without_resolver_is_inactive(self, evaluator):
        context = EvaluationContext()
        assert evaluator.evaluate_value("state({Ship})", context) == FormulaValue.text("inactive")
        assert evaluator.evaluate("state({Ship})", context) == 0.0

    def test_owns_without_resolver_is_false(self, evaluator):
        assert ev(evaluator, "owns({Ship})") == 0.0


class TestErrors:
    """Every failure is an EvaluationError."""

    @pytest.mark.parametrize("formula,fragment", [
        ("median(1, 2)", "Unknown function 'median'"),
        ("abs(1, 2)", "Function 'abs' takes exactly 1 argument, got 2"),
        ("if(1, 2)", "Function 'if' takes exactly 3 arguments, got 2"),
        ("max()", "Function 'max' takes at least 1 argument, got 0"),
        ("phase(1)", "Function 'phase' takes exactly 0 arguments, got 1"),
        ("state(1)", "state() requires an object reference as argument"),
        ("owns({A} + 1)", "owns() requires an object reference as argument"),
    ])
    def test_evaluation_errors(self, evaluator, formula, fragment):
        with pytest.raises(EvaluationError) as exc_info:
            ev(evaluator, formula)
        assert fragment in str(exc_info.value)

    def test_syntax_errors_become_evaluation_errors(self, evaluator):
        with pytest.raises(EvaluationError, match="Formula error"):
            ev(evaluator, "{A} +")

    def test_empty_formula(self, evaluator):
        with pytest.raises(EvaluationError, match="cannot be empty"):
            ev(evaluator, "")

    def test_depth_limit(self, evaluator):
        context = EvaluationContext(depth=9)
        with pytest.raises(CircularReferenceError, match="nesting exceeded 8"):
            evaluator.evaluate("1 + 1", context)

    def test_arithmetic_errors_become_evaluation_errors(self, evaluator, monkeypatch):
        monkeypatch.setitem(NUMERIC_FUNCTIONS, "abs", lambda args: args[0] / 0)
        with pytest.raises(EvaluationError, match="Arithmetic error"):
            ev(evaluator, "abs(1)")

    def test_very_long_chain_is_an_evaluation_error(self, evaluator):
        """Deep left-leaning trees fail cleanly instead of exhausting the stack."""
        formula = " + ".join(["1"] * 5000)
        with pytest.raises(EvaluationError, match="too deeply nested"):
            ev(evaluator, formula)

    def test_circular_error_is_an_evaluation_error(self):
        assert issubclass(CircularReferenceError, EvaluationError)


class TestValueCoercion:
    """The single coercion table in FormulaValue."""

    @pytest.mark.parametrize("value,expected", [
        (FormulaValue.number(2.5), 2.5),
        (FormulaValue.boolean(True), 1.0),
        (FormulaValue.boolean(False), 0.0),
        (FormulaValue.text("owned"), 2.0),
        (FormulaValue.text("Active"), 1.0),
        (FormulaValue.text("inactive"), 0.0),
        (FormulaValue.text("discarded"), -1.0),
        (FormulaValue.text("12"), 12.0),
        (FormulaValue.text("  "), 0.0),
        (FormulaValue.set_count(4), 4.0),
        (FormulaValue.set_elements([{"quantity": 2}, {"quantity": 1}]), 3.0),
        (FormulaValue.from_python(None), 0.0),
    ])
    def test_to_number(self, value, expected):
        assert value.to_number() == expected

    def test_unparseable_text_is_type_mismatch(self):
        with pytest.raises(EvaluationError, match="Type mismatch"):
            FormulaValue.text("Red").to_number()

    @pytest.mark.parametrize("value,expected", [
        (FormulaValue.boolean(True), True),
        (FormulaValue.text("inactive"), False),
        (FormulaValue.text("owned"), True),
        (FormulaValue.text("Red"), True),
        (FormulaValue.text(""), False),
        (FormulaValue.number(0), False),
        (FormulaValue.number(math.nan), False),
        (FormulaValue.set_count(2), True),
    ])
    def test_truthiness(self, value, expected):
        assert value.is_truthy() is expected

    def test_from_python_rejects_unknown_types(self):
        with pytest.raises(EvaluationError):
            FormulaValue.from_python(object())


class TestSharedEvaluator:
    """Module-level convenience entry point."""

    def test_evaluate_formula_default_context(self):
        assert evaluate_formula("2 * 3") == 6.0

    def test_deterministic(self, evaluator):
        context = EvaluationContext(totals={"A": 3.0}, round_index=2)
        formula = "max({A}, round()) ^ 2 / 3"
        assert evaluator.evaluate(formula, context) == evaluator.evaluate(formula, context)
