from __future__ import annotations

import numpy as np
import pytest

from paramsim.exceptions import ExpressionSyntaxError, UnresolvedVariableError
from paramsim.expressions import Expression, parse_expression


def test_free_names_are_variables_only() -> None:
    expr = parse_expression("a + b * exp(c) - 2 * pi")
    assert expr.free_names == frozenset({"a", "b", "c"})


def test_sympy_builtin_names_bind_as_variables() -> None:
    expr = parse_expression("E * N + I")
    assert expr.free_names == frozenset({"E", "N", "I"})
    values = expr.evaluate({"E": [2.0], "N": [3.0], "I": [1.0]})
    assert values.tolist() == [7.0]


def test_caret_is_exponentiation() -> None:
    expr = parse_expression("x^2")
    assert expr.evaluate({"x": [3.0, 4.0]}).tolist() == [9.0, 16.0]


def test_vectorised_evaluation_matches_per_trial() -> None:
    expr = parse_expression("Rf + (B * (Rm - Rf))")
    bindings = {"Rf": np.array([0.01, 0.02]), "B": np.array([1.0, 2.0]), "Rm": np.array([0.05, 0.05])}
    out = expr.evaluate(bindings)
    assert out == pytest.approx([0.05, 0.08])


def test_constant_expression_broadcasts_to_count() -> None:
    out = parse_expression("6").evaluate({}, count=5)
    assert out.shape == (5,)
    assert np.all(out == 6.0)


def test_integer_bindings_allow_negative_powers() -> None:
    out = parse_expression("x^-1").evaluate({"x": np.array([2, 4], dtype=np.int64)})
    assert out == pytest.approx([0.5, 0.25])


def test_unbound_variable_raises() -> None:
    expr = parse_expression("a + b")
    with pytest.raises(UnresolvedVariableError, match="b"):
        expr.evaluate({"a": [1.0]})


@pytest.mark.parametrize("text", ["", "   ", "a +", "(a + b"])
def test_bad_syntax_raises(text: str) -> None:
    with pytest.raises(ExpressionSyntaxError):
        parse_expression(text)


def test_rename_rebinds_whole_tokens_only() -> None:
    expr = parse_expression("Rf + Rfx * Rf")
    renamed = expr.rename("Rf", "rate")
    assert renamed.free_names == frozenset({"rate", "Rfx"})
    assert expr.free_names == frozenset({"Rf", "Rfx"})
    assert renamed.evaluate({"rate": [1.0], "Rfx": [2.0]}).tolist() == [3.0]


def test_rename_missing_name_is_noop() -> None:
    expr = parse_expression("a + b")
    assert expr.rename("zzz", "y") is expr


def test_evaluate_scalar() -> None:
    expr = parse_expression("value * (1 + r)")
    assert expr.evaluate_scalar({"value": 100.0, "r": 0.1}) == pytest.approx(110.0)


def test_parse_passes_expressions_through() -> None:
    expr = parse_expression("a")
    assert parse_expression(expr) is expr
    assert isinstance(expr, Expression)
    assert str(expr) == "a"
