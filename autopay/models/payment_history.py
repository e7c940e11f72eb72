"""PaymentHistory ORM — one row per confirmed transfer, per participating account.

Invariants:
    - direction is "outbound" for the sender's row, "inbound" for a known recipient's row
    - transaction_hash is the confirmed on-chain hash (same hash on both rows)

Design Decisions:
    - scheduled_payment_id is nullable with SET NULL: history outlives cancelled schedules
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from autopay.db.base import Base


class PaymentHistory(Base):
    """Settled transfer record."""
    __tablename__ = "payment_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    scheduled_payment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("scheduled_payments.id", ondelete="SET NULL"),
        nullable=True,
    )
    from_address: Mapped[str] = mapped_column(String(42), nullable=False)
    to_address: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(
        String(66), nullable=False, index=True,
    )
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
