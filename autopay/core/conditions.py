"""Condition Predicates — balance-threshold predicates parsed once into tagged variants.

Invariants:
    - Grammar: `balance <op> <threshold>` with op in {>=, >, <=, <} and a non-negative
      decimal threshold; keyword is case-insensitive, whitespace around tokens optional
    - Anything else parses to Unsupported, which ALWAYS evaluates False (fail-closed)
    - parse_condition is memoized: a stored expression is parsed at most once per process
    - evaluate_predicate is pure: the caller supplies the live balance

Design Decisions:
    - Frozen dataclass variants over operator strings: exhaustive isinstance dispatch,
      hashable, no re-parsing on every tick
    - Full-string match: "balance >= 10 and balance < 20" is Unsupported rather than
      silently truncated to its first clause
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache


_CONDITION_RE = re.compile(
    r"^\s*balance\s*(>=|>|<=|<)\s*(\d+(?:\.\d*)?)\s*$", re.IGNORECASE,
)


@dataclass(frozen=True)
class BalanceAtLeast:
    threshold: Decimal
    operator = ">="


@dataclass(frozen=True)
class BalanceAbove:
    threshold: Decimal
    operator = ">"


@dataclass(frozen=True)
class BalanceAtMost:
    threshold: Decimal
    operator = "<="


@dataclass(frozen=True)
class BalanceBelow:
    threshold: Decimal
    operator = "<"


@dataclass(frozen=True)
class Unsupported:
    """Unrecognized expression — kept verbatim for diagnostics."""
    raw: str


Predicate = BalanceAtLeast | BalanceAbove | BalanceAtMost | BalanceBelow | Unsupported

_VARIANTS = {
    ">=": BalanceAtLeast,
    ">": BalanceAbove,
    "<=": BalanceAtMost,
    "<": BalanceBelow,
}


@lru_cache(maxsize=1024)
def parse_condition(expression: str | None) -> Predicate:
    """Parse a condition string. Never raises."""
    if not expression:
        return Unsupported(raw=expression or "")
    match = _CONDITION_RE.match(expression)
    if not match:
        return Unsupported(raw=expression)
    op, raw_threshold = match.groups()
    try:
        threshold = Decimal(raw_threshold)
    except InvalidOperation:
        return Unsupported(raw=expression)
    return _VARIANTS[op](threshold=threshold)


def evaluate_predicate(predicate: Predicate, balance: Decimal) -> bool:
    """Apply the predicate to a live balance."""
    if isinstance(predicate, BalanceAtLeast):
        return balance >= predicate.threshold
    if isinstance(predicate, BalanceAbove):
        return balance > predicate.threshold
    if isinstance(predicate, BalanceAtMost):
        return balance <= predicate.threshold
    if isinstance(predicate, BalanceBelow):
        return balance < predicate.threshold
    return False


def to_expression(predicate: Predicate) -> str:
    """Canonical string form — the persisted shape of a predicate."""
    if isinstance(predicate, Unsupported):
        return predicate.raw
    return f"balance {predicate.operator} {predicate.threshold}"


def is_supported(predicate: Predicate) -> bool:
    return not isinstance(predicate, Unsupported)
