"""ScheduledPayment ORM — persists one schedule entry (single, recurring, or conditional).

Invariants:
    - id is UUID primary key, immutable; owner_id never changes
    - payment_type immutable after creation
    - amount > 0 (CHECK constraint), stored as NUMERIC(38, 18)
    - frequency set iff RECURRING; condition_expression set iff CONDITIONAL
    - next_execution_date is NULL only when status is terminal
    - execution_count is monotonically non-decreasing
    - status transitions: active -> active (retry) | completed | failed

Design Decisions:
    - Flat columns mirror the persisted record shape; per-type config objects are
      rebuilt in core (core/schedule_planner.py) rather than stored as JSON
    - Composite index (status, next_execution_date): the readiness query is the hot path
    - ondelete CASCADE on owner_id: removing an account removes its schedules
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String, Text, Integer, Numeric, DateTime, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from autopay.core.conditions import Predicate, parse_condition
from autopay.db.base import Base


class ScheduledPayment(Base):
    """Schedule entry — mutated only by the post-execution state updater."""
    __tablename__ = "scheduled_payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_scheduled_payments_amount_positive"),
        Index("ix_scheduled_payments_ready", "status", "next_execution_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    payment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_address: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    condition_expression: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    next_execution_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_execution_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    execution_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    max_executions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    owner: Mapped["Account"] = relationship(
        "Account", back_populates="scheduled_payments",
    )

    @property
    def predicate(self) -> Predicate:
        """Parsed condition (memoized in core)."""
        return parse_condition(self.condition_expression)

