"""Fee & Sufficiency Math — unit conversion, fee estimation and balance checks in base units.

Invariants:
    - All comparisons happen in integer base units (Wei), never in floats
    - Sufficiency is a CLOSED boundary: balance == amount + fee is sufficient
    - Gas limit = estimate + 20% margin; protocol minimum (21_000) when estimation failed
    - Fallback fee estimate = FALLBACK_GAS_UNITS * unit price (estimation failure never aborts)
    - Fee parameters prefer the two-parameter model (max fee + priority fee) when the
      quote carries both; otherwise a single gas price

Design Decisions:
    - Decimal for human units, int for base units: conversion is exact at 18 decimals
    - FeeQuote is a frozen dataclass so the RPC client can build it and core can reason
      about it without importing web3
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN

from autopay.core.domain_types import Wei


MIN_GAS_LIMIT = 21_000
FALLBACK_GAS_UNITS = 2 * MIN_GAS_LIMIT
GAS_LIMIT_MARGIN_PERCENT = 20


@dataclass(frozen=True)
class FeeQuote:
    """Current network fee parameters (base units per gas)."""
    gas_price: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None

    @property
    def unit_price(self) -> int:
        """Price used for cost estimation: legacy price, else the EIP-1559 cap."""
        return self.gas_price or self.max_fee_per_gas or 0

    @property
    def supports_dynamic_fees(self) -> bool:
        return bool(self.max_fee_per_gas and self.max_priority_fee_per_gas)


@dataclass(frozen=True)
class Sufficiency:
    """Balance check outcome, in base units."""
    balance: Wei
    amount: Wei
    fee: Wei

    @property
    def required_total(self) -> Wei:
        return Wei(self.amount + self.fee)

    @property
    def is_sufficient(self) -> bool:
        return self.balance >= self.required_total

    @property
    def max_transferable(self) -> Wei:
        """What could be sent after paying the fee (may be negative)."""
        return Wei(self.balance - self.fee)


def to_base_units(amount: Decimal, decimals: int = 18) -> Wei:
    """Decimal native units → integer base units (truncates beyond `decimals`)."""
    scaled = (Decimal(amount) * (Decimal(10) ** decimals)).quantize(
        Decimal(1), rounding=ROUND_DOWN,
    )
    return Wei(int(scaled))


def from_base_units(value: int, decimals: int = 18) -> Decimal:
    return Decimal(value) / (Decimal(10) ** decimals)


def estimate_fee(gas_estimate: int | None, quote: FeeQuote) -> Wei:
    """Fee for a transfer; falls back to FALLBACK_GAS_UNITS when gas is unknown."""
    units = gas_estimate if gas_estimate is not None else FALLBACK_GAS_UNITS
    return Wei(units * quote.unit_price)


def gas_limit_for(gas_estimate: int | None) -> int:
    if gas_estimate is None:
        return MIN_GAS_LIMIT
    return gas_estimate * (100 + GAS_LIMIT_MARGIN_PERCENT) // 100


def fee_fields(quote: FeeQuote) -> dict:
    """Transaction fee fields for the quote's fee model."""
    if quote.supports_dynamic_fees:
        return {
            "type": 2,
            "maxFeePerGas": quote.max_fee_per_gas,
            "maxPriorityFeePerGas": quote.max_priority_fee_per_gas,
        }
    if quote.gas_price:
        return {"gasPrice": quote.gas_price}
    return {}


def check_sufficiency(balance: int, amount: int, fee: int) -> Sufficiency:
    return Sufficiency(Wei(balance), Wei(amount), Wei(fee))
