"""Execution Result — transient outcome of one execution attempt.

Invariants:
    - success=True iff status == executed and transaction_id is set
    - Failures always carry a human-readable error and a FailureKind
    - diagnostics is observability only; only `error` is persisted on the schedule

Design Decisions:
    - Named constructors (executed/failed) keep the success/status/kind triple consistent
    - BalanceCheck mirrors the read-only precheck contract used by the tick pipeline
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from autopay.core.domain_types import ExecutionStatus, FailureKind


@dataclass
class ExecutionResult:
    success: bool
    transaction_id: str | None = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    error: str | None = None
    failure_kind: FailureKind | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def executed(cls, transaction_id: str, **diagnostics: Any) -> "ExecutionResult":
        return cls(
            success=True, transaction_id=transaction_id,
            status=ExecutionStatus.EXECUTED, diagnostics=diagnostics,
        )

    @classmethod
    def failed(
        cls, error: str, kind: FailureKind, **diagnostics: Any,
    ) -> "ExecutionResult":
        return cls(
            success=False, status=ExecutionStatus.FAILED, error=error,
            failure_kind=kind, diagnostics={"failure_kind": kind.value, **diagnostics},
        )


@dataclass
class BalanceCheck:
    """Read-only balance precheck (native units)."""
    success: bool
    is_sufficient: bool
    balance: Decimal | None = None
    required: Decimal | None = None
    fee_estimate: Decimal | None = None
    required_total: Decimal | None = None
    available: Decimal | None = None
    error: str | None = None
