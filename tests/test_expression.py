from __future__ import annotations

import pytest

from content_engine.errors import ExpressionError
from content_engine.utils.expression import (
    evaluate,
    fallback_value,
    referenced_identifiers,
    safe_evaluate,
    truthy,
)


def test_arithmetic_and_math_functions():
    assert evaluate("Math.ceil(data_volume_gb / 100)", {"data_volume_gb": 250}) == 3
    assert evaluate("Math.max(1, user_count / 50)", {"user_count": 200}) == 4
    assert evaluate("2 + 3 * 4", {}) == 14
    assert evaluate("(2 + 3) * 4", {}) == 20


def test_ternary_multiplier():
    expr = "complexity === 'high' ? 1.5 : 1.0"
    assert evaluate(expr, {"complexity": "high"}) == 1.5
    assert evaluate(expr, {"complexity": "low"}) == 1.0


def test_logical_or_returns_first_truthy_operand():
    assert evaluate("user_count || 1", {"user_count": 0}) == 1
    assert evaluate("user_count || 1", {"user_count": 25}) == 25


def test_string_numbers_are_coerced():
    assert evaluate("site_count > 1 ? 1.5 : 1.0", {"site_count": "4"}) == 1.5
    assert evaluate("users * 2", {"users": "10"}) == 20


def test_loose_and_strict_equality():
    assert evaluate("count == '5'", {"count": 5}) is True
    assert evaluate("count === '5'", {"count": 5}) is False
    assert evaluate("flag !== false", {"flag": True}) is True


def test_unknown_identifier_raises():
    with pytest.raises(ExpressionError):
        evaluate("missing_factor * 2", {})


def test_division_by_zero_raises():
    with pytest.raises(ExpressionError):
        evaluate("users / 0", {"users": 10})


def test_code_is_never_executed():
    with pytest.raises(ExpressionError):
        evaluate("__import__('os').system('echo hi')", {})


def test_safe_evaluate_uses_literal_after_or():
    assert safe_evaluate("unknown_thing || 5", {}) == 5
    assert safe_evaluate("broken ) expression", {}) == 1.0


def test_fallback_value():
    assert fallback_value("Math.ceil(x / 10) || 2") == 2
    assert fallback_value("x * 3") == 1.0


def test_referenced_identifiers_excludes_math_calls():
    assert referenced_identifiers("Math.ceil(data_volume_gb / 100) + site_count") == {"data_volume_gb", "site_count"}
    assert referenced_identifiers("complexity === 'high' ? 1.5 : 1.0") == {"complexity"}


def test_truthy_follows_javascript_rules():
    assert truthy(0) is False
    assert truthy("") is False
    assert truthy(None) is False
    assert truthy("0") is True
    assert truthy(2) is True


def test_and_skips_right_operand_when_left_is_falsy():
    variables = {"site_count": 0, "user_count": 100}
    assert evaluate("site_count > 0 && user_count / site_count > 10", variables) is False
    assert safe_evaluate("site_count > 0 && user_count / site_count > 10", variables) is False
    assert evaluate("false && missing_factor", {}) is False


def test_or_skips_right_operand_when_left_is_truthy():
    variables = {"site_count": 0, "user_count": 100}
    assert evaluate("site_count === 0 || user_count / site_count > 10", variables) is True
    assert evaluate("user_count || missing_factor", variables) == 100


def test_ternary_evaluates_only_the_chosen_branch():
    variables = {"site_count": 0, "user_count": 100}
    assert evaluate("site_count > 0 ? user_count / site_count : 0", variables) == 0
    assert evaluate("site_count === 0 ? 1 : Math.ceil(missing_factor / site_count)", variables) == 1
    assert evaluate("site_count > 0 ? 2 : user_count / 50", variables) == 2


def test_skipped_operand_is_still_parsed():
    with pytest.raises(ExpressionError):
        evaluate("false && (user_count +", {"user_count": 1})
