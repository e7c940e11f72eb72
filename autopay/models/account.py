"""Account ORM — the owner/account directory record the engine reads.

Invariants:
    - wallet_address is the on-record sending address (unique, checksummed on write)
    - encrypted_private_key is set iff auto_pay_enabled
    - Deleting an account cascades to its schedules, history and notifications

Design Decisions:
    - Account CRUD (signup, profile) lives outside this service; the engine only reads
      accounts and toggles automatic payments
    - Authorization material stored encrypted (Fernet token), never in plain text
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from autopay.db.base import Base


class Account(Base):
    """Account aggregate root — owns scheduled payments."""
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    wallet_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True, unique=True, index=True,
    )
    auto_pay_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    encrypted_private_key: Mapped[str | None] = mapped_column(Text, nullable=True)
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
    scheduled_payments: Mapped[list["ScheduledPayment"]] = relationship(
        "ScheduledPayment", back_populates="owner",
        cascade="all, delete-orphan", passive_deletes=True,
    )
