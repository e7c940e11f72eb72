"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - Amounts are Decimal in native units; Wei is an int in base units
    - All valid states encoded as Enums — no raw string matching
    - Terminal states (completed, failed) are never left automatically

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to the DB column without custom encoders
"""

from datetime import timedelta
from enum import Enum
from typing import NewType


# ─── Value Types ─────────────────────────────────────────────────

Wei = NewType("Wei", int)              # base units (10^-decimals of a native unit)
TxHash = NewType("TxHash", str)        # 0x-prefixed transaction hash


# ─── Enums ───────────────────────────────────────────────────────

class PaymentType(str, Enum):
    """Schedule kind — immutable after creation."""
    SINGLE = "SINGLE"
    RECURRING = "RECURRING"
    CONDITIONAL = "CONDITIONAL"


class Frequency(str, Enum):
    """Recurrence period for RECURRING schedules."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ScheduleStatus(str, Enum):
    """Schedule lifecycle — maps to DB `status` column."""
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ScheduleStatus.ACTIVE


class ExecutionStatus(str, Enum):
    """Outcome status carried by ExecutionResult."""
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Failure taxonomy — decides whether a failure is terminal for the attempt."""
    VALIDATION = "validation"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSIENT = "transient"
    DECRYPTION = "decryption"
    CONFIGURATION = "configuration"


class TransferDirection(str, Enum):
    """Payment history direction, from the account's point of view."""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


# ─── Retry Policy ────────────────────────────────────────────────

RETRY_DELAY = timedelta(minutes=5)             # failed recurring / insufficient balance
CONDITION_RECHECK_DELAY = timedelta(minutes=1)  # condition not met / other failures
INSUFFICIENT_BALANCE_MARKER = "Insufficient balance"
