"""Schedule Schemas — Pydantic models for the scheduled-payment API boundary.

Invariants:
    - ScheduleCreate.amount > 0; frequency limited to the four supported periods
    - ScheduleCreate cross-validates per type: frequency iff RECURRING,
      condition iff CONDITIONAL
    - Responses serialize amounts as strings (no float rounding on the wire)

Design Decisions:
    - Literal for frequency over the Frequency enum: Pydantic reports the allowed
      values in its error message
    - to_request()/to_decision() hand the planner plain core dataclasses, so core never
      imports Pydantic
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from autopay.core.domain_types import PaymentType
from autopay.core.schedule_planner import ScheduleDecision, TransferRequest


class ScheduleCreate(BaseModel):
    """Create a scheduled payment for the calling owner."""
    recipient_address: str = Field(min_length=1, max_length=42)
    # Numeric(38, 18) column: at most 20 integer digits
    amount: Decimal = Field(gt=0, lt=Decimal("1e20"), max_digits=38, decimal_places=18)
    payment_type: PaymentType = PaymentType.SINGLE
    frequency: Literal["daily", "weekly", "monthly", "yearly"] | None = None
    condition: str | None = Field(None, max_length=200)
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_executions: int | None = Field(None, ge=1)
    execute_immediately: bool = False

    @field_validator("recipient_address", mode="before")
    @classmethod
    def strip_address(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_type_fields(self):
        if self.payment_type is PaymentType.RECURRING and not self.frequency:
            raise ValueError("frequency is required for RECURRING payments")
        if self.payment_type is PaymentType.CONDITIONAL and not (
            self.condition and self.condition.strip()
        ):
            raise ValueError("condition is required for CONDITIONAL payments")
        return self

    def to_request(self, owner_id: UUID) -> TransferRequest:
        return TransferRequest(owner_id, self.recipient_address, self.amount)

    def to_decision(self) -> ScheduleDecision:
        return ScheduleDecision(
            payment_type=self.payment_type,
            frequency=self.frequency if self.payment_type is PaymentType.RECURRING else None,
            condition=self.condition if self.payment_type is PaymentType.CONDITIONAL else None,
            start_date=self.start_date,
            end_date=self.end_date,
            max_executions=self.max_executions,
            execute_immediately=self.execute_immediately,
        )


class ScheduleResponse(BaseModel):
    """Scheduled payment as persisted."""
    id: UUID
    owner_id: UUID
    payment_type: str
    recipient_address: str
    amount: str
    frequency: str | None
    condition_expression: str | None
    start_date: datetime | None
    end_date: datetime | None
    next_execution_date: datetime | None
    last_execution_date: datetime | None
    execution_count: int
    max_executions: int | None
    status: str

    @classmethod
    def from_model(cls, payment) -> "ScheduleResponse":
        return cls(
            id=payment.id,
            owner_id=payment.owner_id,
            payment_type=payment.payment_type,
            recipient_address=payment.recipient_address,
            amount=f"{Decimal(payment.amount).normalize():f}",
            frequency=payment.frequency,
            condition_expression=payment.condition_expression,
            start_date=payment.start_date,
            end_date=payment.end_date,
            next_execution_date=payment.next_execution_date,
            last_execution_date=payment.last_execution_date,
            execution_count=payment.execution_count,
            max_executions=payment.max_executions,
            status=payment.status,
        )


class ExternalTransfer(BaseModel):
    """A transfer the owner made outside the engine (manual send)."""
    to_address: str = Field(min_length=1, max_length=42)
    amount: Decimal = Field(gt=0)
    transaction_hash: str | None = Field(None, max_length=66)


class ExternalTransferResult(BaseModel):
    matched: bool
    schedule: ScheduleResponse | None = None


class CancelResult(BaseModel):
    cancelled: bool
    id: UUID


class PaymentOutcome(BaseModel):
    payment_id: str
    payment_type: str | None
    success: bool
    transaction_id: str | None = None
    error: str | None = None
    failure_kind: str | None = None
    deferred: bool = False


class TickSummary(BaseModel):
    """Manual tick result."""
    processed: int
    conditional_processed: int = 0
    payments: list[PaymentOutcome]
    conditional: list[PaymentOutcome] = []
    error: str | None = None
