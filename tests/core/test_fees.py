"""Fee & Sufficiency Math — base-unit conversion, fee fallback, closed boundary.

Tests cover:
    - Decimal ↔ base-unit conversion (truncation beyond 18 decimals)
    - Fee estimate with and without a gas estimate
    - Gas limit margin and protocol-minimum fallback
    - Sufficiency boundary: equal is sufficient, one wei short is not
    - Fee fields prefer the two-parameter model
"""

from decimal import Decimal

from autopay.core.fees import (
    FALLBACK_GAS_UNITS, MIN_GAS_LIMIT, FeeQuote, check_sufficiency, estimate_fee,
    fee_fields, from_base_units, gas_limit_for, to_base_units,
)

GWEI = 10**9


def test_to_base_units_is_exact():
    assert to_base_units(Decimal("1.5")) == 1_500_000_000_000_000_000
    assert to_base_units(Decimal("0.000000000000000001")) == 1


def test_to_base_units_truncates_extra_precision():
    assert to_base_units(Decimal("0.0000000000000000019")) == 1


def test_from_base_units():
    assert from_base_units(2_500_000, decimals=6) == Decimal("2.5")


def test_fee_uses_gas_estimate():
    assert estimate_fee(50_000, FeeQuote(gas_price=20 * GWEI)) == 10**15


def test_fee_falls_back_to_default_units():
    quote = FeeQuote(gas_price=10 * GWEI)
    assert estimate_fee(None, quote) == FALLBACK_GAS_UNITS * 10 * GWEI
    assert FALLBACK_GAS_UNITS == 42_000


def test_unit_price_prefers_legacy_price_then_max_fee():
    assert FeeQuote(gas_price=3, max_fee_per_gas=9).unit_price == 3
    assert FeeQuote(max_fee_per_gas=9, max_priority_fee_per_gas=1).unit_price == 9
    assert FeeQuote().unit_price == 0


def test_gas_limit_adds_twenty_percent():
    assert gas_limit_for(21_000) == 25_200
    assert gas_limit_for(None) == MIN_GAS_LIMIT


def test_sufficiency_boundary_is_closed():
    amount, fee = to_base_units(Decimal("5")), 10**15
    assert check_sufficiency(amount + fee, amount, fee).is_sufficient
    assert not check_sufficiency(amount + fee - 1, amount, fee).is_sufficient


def test_max_transferable_is_balance_minus_fee():
    balance = to_base_units(Decimal("4"))
    result = check_sufficiency(balance, to_base_units(Decimal("5")), 10**15)
    assert not result.is_sufficient
    assert from_base_units(result.max_transferable) == Decimal("3.999")


def test_fee_fields_dynamic_model():
    quote = FeeQuote(gas_price=5, max_fee_per_gas=12, max_priority_fee_per_gas=2)
    assert fee_fields(quote) == {
        "type": 2, "maxFeePerGas": 12, "maxPriorityFeePerGas": 2,
    }


def test_fee_fields_legacy_model():
    assert fee_fields(FeeQuote(gas_price=5)) == {"gasPrice": 5}
    assert fee_fields(FeeQuote(gas_price=5, max_fee_per_gas=12)) == {"gasPrice": 5}
    assert fee_fields(FeeQuote()) == {}
