"""Recurrence Arithmetic — next occurrence of a schedule from a base timestamp.

Invariants:
    - next_occurrence adds exactly ONE calendar unit: 1 day, 7 days, 1 calendar month,
      or 1 calendar year
    - Month/year arithmetic clamps to the last valid day (Jan 31 + 1 month = Feb 28/29)
    - Unknown frequency values fall back to +1 day (fail-safe, not fail-closed)
    - All returned datetimes are timezone-aware UTC

Design Decisions:
    - calendar.monthrange clamp over a third-party relativedelta: one function,
      no extra dependency for four cases
    - as_utc() tolerates naive datetimes because SQLite round-trips drop tzinfo;
      naive values are interpreted as UTC
"""

import calendar
from datetime import datetime, timedelta, timezone

from autopay.core.domain_types import Frequency


def utc_now() -> datetime:
    """Default clock — the only place core touches wall time, and only as a default."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC. Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_frequency(raw: str | Frequency | None) -> Frequency | None:
    """Map a stored frequency string to the enum. Unknown/empty → None."""
    if raw is None:
        return None
    if isinstance(raw, Frequency):
        return raw
    try:
        return Frequency(raw.strip().lower())
    except ValueError:
        return None


def add_months(base: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def next_occurrence(base: datetime, frequency: str | Frequency | None) -> datetime:
    """One period of `frequency` after `base`."""
    base = as_utc(base)
    freq = parse_frequency(frequency)
    if freq is Frequency.WEEKLY:
        return base + timedelta(days=7)
    if freq is Frequency.MONTHLY:
        return add_months(base, 1)
    if freq is Frequency.YEARLY:
        return add_months(base, 12)
    # DAILY and anything unrecognized
    return base + timedelta(days=1)
