"""Schedule Planner — turns a transfer request + scheduling decision into a new entry.

Invariants:
    - build_schedule_config validates the per-type requirements:
      frequency iff RECURRING, condition iff CONDITIONAL, amount > 0,
      end_date after start_date, max_executions >= 1
    - initial_next_execution precedence:
        1. RECURRING + execute_immediately   -> now
        2. RECURRING + start_date in future  -> start_date; past/now -> now
        3. RECURRING without start_date      -> now + one period
        4. CONDITIONAL                       -> now
        5. SINGLE with start_date            -> start_date
        6. otherwise                         -> now
    - plan_schedule is PURE: returns the column mapping, the shell performs the insert
    - New entries are always status=active, execution_count=0

Design Decisions:
    - One config dataclass per payment type instead of one bag of nullable fields;
      config_to_columns serializes back to the flat persisted shape
    - Unknown frequencies are rejected here (hardening at creation); recurrence
      arithmetic itself stays fail-safe for rows written before this check
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from autopay.core.conditions import Predicate, parse_condition, to_expression
from autopay.core.domain_types import Frequency, PaymentType, ScheduleStatus
from autopay.core.errors import ScheduleValidationError
from autopay.core.recurrence import as_utc, next_occurrence, parse_frequency


@dataclass(frozen=True)
class TransferRequest:
    """Validated transfer intent: who pays whom, how much."""
    owner_id: object
    recipient_address: str
    amount: Decimal


@dataclass(frozen=True)
class ScheduleDecision:
    """Scheduling intent as produced by the caller (UI, intent extraction, API)."""
    payment_type: PaymentType
    frequency: str | None = None
    condition: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_executions: int | None = None
    execute_immediately: bool = False


@dataclass(frozen=True)
class SingleConfig:
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_executions: int | None = None


@dataclass(frozen=True)
class RecurringConfig:
    frequency: Frequency
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_executions: int | None = None


@dataclass(frozen=True)
class ConditionalConfig:
    predicate: Predicate
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_executions: int | None = None


ScheduleConfig = SingleConfig | RecurringConfig | ConditionalConfig


def build_schedule_config(decision: ScheduleDecision) -> ScheduleConfig:
    """Validate the decision and produce the per-type config. Raises ScheduleValidationError."""
    start = as_utc(decision.start_date) if decision.start_date else None
    end = as_utc(decision.end_date) if decision.end_date else None
    if start and end and end <= start:
        raise ScheduleValidationError("end_date must be after start_date", "end_date")
    if decision.max_executions is not None and decision.max_executions < 1:
        raise ScheduleValidationError("max_executions must be >= 1", "max_executions")

    if decision.payment_type is PaymentType.RECURRING:
        frequency = parse_frequency(decision.frequency)
        if frequency is None:
            raise ScheduleValidationError(
                f"RECURRING payments require a frequency "
                f"(daily, weekly, monthly, yearly); got {decision.frequency!r}",
                "frequency",
            )
        return RecurringConfig(frequency, start, end, decision.max_executions)

    if decision.payment_type is PaymentType.CONDITIONAL:
        if not decision.condition or not decision.condition.strip():
            raise ScheduleValidationError(
                "CONDITIONAL payments require a condition expression", "condition",
            )
        return ConditionalConfig(
            parse_condition(decision.condition.strip()), start, end,
            decision.max_executions,
        )

    return SingleConfig(start, end, decision.max_executions)


def initial_next_execution(
    config: ScheduleConfig, execute_immediately: bool, now: datetime,
) -> datetime:
    """First time the entry becomes eligible for evaluation."""
    now = as_utc(now)
    if isinstance(config, RecurringConfig):
        if execute_immediately:
            return now
        if config.start_date:
            return config.start_date if config.start_date > now else now
        return next_occurrence(now, config.frequency)
    if isinstance(config, ConditionalConfig):
        return now
    if config.start_date:
        return config.start_date
    return now


def config_to_columns(config: ScheduleConfig) -> dict:
    """Serialize a config to the flat persisted shape."""
    columns = {
        "frequency": None,
        "condition_expression": None,
        "start_date": config.start_date,
        "end_date": config.end_date,
        "max_executions": config.max_executions,
    }
    if isinstance(config, RecurringConfig):
        columns["payment_type"] = PaymentType.RECURRING.value
        columns["frequency"] = config.frequency.value
    elif isinstance(config, ConditionalConfig):
        columns["payment_type"] = PaymentType.CONDITIONAL.value
        columns["condition_expression"] = to_expression(config.predicate)
    else:
        columns["payment_type"] = PaymentType.SINGLE.value
    return columns


def plan_schedule(
    request: TransferRequest, decision: ScheduleDecision, now: datetime,
) -> dict:
    """Full column mapping for a new scheduled payment. Pure."""
    if request.amount <= 0:
        raise ScheduleValidationError("amount must be greater than 0", "amount")
    if not request.recipient_address:
        raise ScheduleValidationError("recipient_address is required", "recipient_address")
    config = build_schedule_config(decision)
    return {
        "owner_id": request.owner_id,
        "recipient_address": request.recipient_address,
        "amount": request.amount,
        **config_to_columns(config),
        "next_execution_date": initial_next_execution(
            config, decision.execute_immediately, now,
        ),
        "last_execution_date": None,
        "execution_count": 0,
        "status": ScheduleStatus.ACTIVE.value,
    }
