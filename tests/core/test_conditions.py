"""Condition Predicates — parse once into variants, evaluate fail-closed.

Tests cover:
    - All four operators parse to their variant and evaluate at the boundary
    - Case/whitespace tolerance of the grammar
    - Unrecognized, compound and empty expressions → Unsupported → False
    - Canonical expression round trip used for persistence
"""

from decimal import Decimal

from autopay.core.conditions import (
    BalanceAbove, BalanceAtLeast, BalanceAtMost, BalanceBelow, Unsupported,
    evaluate_predicate, is_supported, parse_condition, to_expression,
)


def test_at_least_is_inclusive():
    predicate = parse_condition("balance >= 10")
    assert predicate == BalanceAtLeast(Decimal("10"))
    assert evaluate_predicate(predicate, Decimal("10"))
    assert not evaluate_predicate(predicate, Decimal("9.999999"))


def test_above_is_exclusive():
    predicate = parse_condition("balance > 10")
    assert isinstance(predicate, BalanceAbove)
    assert not evaluate_predicate(predicate, Decimal("10"))
    assert evaluate_predicate(predicate, Decimal("10.000001"))


def test_at_most_and_below():
    at_most = parse_condition("balance <= 2.5")
    below = parse_condition("balance < 2.5")
    assert isinstance(at_most, BalanceAtMost)
    assert isinstance(below, BalanceBelow)
    assert evaluate_predicate(at_most, Decimal("2.5"))
    assert not evaluate_predicate(below, Decimal("2.5"))
    assert evaluate_predicate(below, Decimal("2.4"))


def test_keyword_case_and_spacing_are_tolerated():
    assert parse_condition("  BALANCE>=5 ") == BalanceAtLeast(Decimal("5"))
    assert parse_condition("Balance  <  0.5") == BalanceBelow(Decimal("0.5"))


def test_trailing_dot_threshold_parses():
    assert parse_condition("balance > 5.") == BalanceAbove(Decimal("5"))


def test_unrecognized_expressions_are_unsupported():
    for raw in ("price >= 10", "balance == 10", "balance >= -1", "balance >= ten"):
        predicate = parse_condition(raw)
        assert isinstance(predicate, Unsupported), raw
        assert not evaluate_predicate(predicate, Decimal("1000"))


def test_compound_expression_is_not_truncated_to_first_clause():
    predicate = parse_condition("balance >= 10 and balance < 20")
    assert predicate == Unsupported("balance >= 10 and balance < 20")
    assert not evaluate_predicate(predicate, Decimal("15"))


def test_empty_expression_is_unsupported():
    assert not is_supported(parse_condition(""))
    assert not is_supported(parse_condition(None))


def test_parse_is_memoized():
    assert parse_condition("balance >= 42") is parse_condition("balance >= 42")


def test_to_expression_is_canonical():
    assert to_expression(parse_condition("BALANCE>=10")) == "balance >= 10"
    assert to_expression(Unsupported("whatever")) == "whatever"
