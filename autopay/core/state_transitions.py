"""Post-Execution Transitions — next status/timing of a schedule after an attempt.

Invariants:
    - compute_transition is PURE and total: every (schedule, outcome, now) yields a transition
    - Resolution order:
        1. max_executions reached (count after this attempt) -> completed, next=None
        2. RECURRING: success -> next = now + one period, active;
                      failure -> next = now + RETRY_DELAY, active
        3. CONDITIONAL: success -> completed, next=None (fires at most once);
                        failure -> active, re-check after RETRY_DELAY when the reason
                        names an insufficient balance, else CONDITION_RECHECK_DELAY
        4. SINGLE: success -> completed; failure -> failed (terminal, no retry)
        5. end_date passed overrides everything -> completed, next=None
    - execution_count increments exactly once per executed=True report
    - last_execution_date moves only on success; failures keep the previous value
    - Terminal transitions always carry next_execution_date=None

Design Decisions:
    - Returns a ScheduleTransition value; the shell (services/state_updater.py) persists it
    - compute_deferral handles infrastructure failures (decryption/configuration): the
      attempt is not counted and the entry stays active regardless of payment type
    - Duplicate reports of the same transaction are NOT detected here (see DESIGN.md)
"""

from dataclasses import dataclass
from datetime import datetime

from autopay.core.domain_types import (
    PaymentType, ScheduleStatus,
    RETRY_DELAY, CONDITION_RECHECK_DELAY, INSUFFICIENT_BALANCE_MARKER,
)
from autopay.core.recurrence import as_utc, next_occurrence
from autopay.core.repository_protocols import ScheduleLike


@dataclass(frozen=True)
class ScheduleTransition:
    """Fields to persist after an attempt, plus the reason for observability."""
    status: ScheduleStatus
    next_execution_date: datetime | None
    execution_count: int
    last_execution_date: datetime | None
    reason: str

    def as_columns(self) -> dict:
        return {
            "status": self.status.value,
            "next_execution_date": self.next_execution_date,
            "execution_count": self.execution_count,
            "last_execution_date": self.last_execution_date,
        }


def _end_date_passed(schedule: ScheduleLike, now: datetime) -> bool:
    return schedule.end_date is not None and now > as_utc(schedule.end_date)


def _failure_recheck_delay(error_message: str | None):
    if error_message and INSUFFICIENT_BALANCE_MARKER.lower() in error_message.lower():
        return RETRY_DELAY
    return CONDITION_RECHECK_DELAY


def compute_transition(
    schedule: ScheduleLike,
    executed: bool,
    error_message: str | None,
    now: datetime,
) -> ScheduleTransition:
    """Decide the schedule's next state after an execution/evaluation attempt."""
    now = as_utc(now)
    count = (schedule.execution_count or 0) + (1 if executed else 0)
    last = now if executed else schedule.last_execution_date
    payment_type = PaymentType(schedule.payment_type)

    if schedule.max_executions and count >= schedule.max_executions:
        status, next_at = ScheduleStatus.COMPLETED, None
        reason = f"max executions reached ({schedule.max_executions})"
    elif payment_type is PaymentType.RECURRING:
        status = ScheduleStatus.ACTIVE
        if executed:
            next_at = next_occurrence(now, schedule.frequency)
            reason = "recurring payment executed, next period scheduled"
        else:
            next_at = now + RETRY_DELAY
            reason = "recurring payment failed, retry scheduled"
    elif payment_type is PaymentType.CONDITIONAL:
        if executed:
            status, next_at = ScheduleStatus.COMPLETED, None
            reason = "conditional payment executed"
        else:
            status = ScheduleStatus.ACTIVE
            next_at = now + _failure_recheck_delay(error_message)
            reason = "condition not met or execution failed, re-check scheduled"
    elif executed:
        status, next_at = ScheduleStatus.COMPLETED, None
        reason = "single payment executed"
    else:
        status, next_at = ScheduleStatus.FAILED, None
        reason = f"single payment failed: {error_message or 'Unknown error'}"

    if _end_date_passed(schedule, now):
        status, next_at = ScheduleStatus.COMPLETED, None
        reason = "end date reached"

    return ScheduleTransition(status, next_at, count, last, reason)


def compute_deferral(schedule: ScheduleLike, now: datetime) -> ScheduleTransition:
    """Postpone an entry after an infrastructure failure without counting the attempt."""
    now = as_utc(now)
    if _end_date_passed(schedule, now):
        return ScheduleTransition(
            ScheduleStatus.COMPLETED, None, schedule.execution_count or 0,
            schedule.last_execution_date, "end date reached",
        )
    return ScheduleTransition(
        ScheduleStatus.ACTIVE, now + RETRY_DELAY, schedule.execution_count or 0,
        schedule.last_execution_date, "deferred after infrastructure failure",
    )
