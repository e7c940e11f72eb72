"""Initial schema — accounts, scheduled_payments, payment_history, notifications.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=True, unique=True),
        sa.Column("auto_pay_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("encrypted_private_key", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_accounts_wallet_address", "accounts", ["wallet_address"])

    op.create_table(
        "scheduled_payments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "owner_id", UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("payment_type", sa.String(20), nullable=False),
        sa.Column("recipient_address", sa.String(42), nullable=False),
        sa.Column("amount", sa.Numeric(38, 18), nullable=False),
        sa.Column("frequency", sa.String(20), nullable=True),
        sa.Column("condition_expression", sa.Text, nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_execution_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_execution_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("execution_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_executions", sa.Integer, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_scheduled_payments_amount_positive"),
    )
    op.create_index("ix_scheduled_payments_owner_id", "scheduled_payments", ["owner_id"])
    op.create_index("ix_scheduled_payments_status", "scheduled_payments", ["status"])
    op.create_index(
        "ix_scheduled_payments_ready", "scheduled_payments",
        ["status", "next_execution_date"],
    )

    op.create_table(
        "payment_history",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id", UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "scheduled_payment_id", UUID(as_uuid=True),
            sa.ForeignKey("scheduled_payments.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("from_address", sa.String(42), nullable=False),
        sa.Column("to_address", sa.String(42), nullable=False),
        sa.Column("amount", sa.Numeric(38, 18), nullable=False),
        sa.Column("transaction_hash", sa.String(66), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_payment_history_account_id", "payment_history", ["account_id"])
    op.create_index(
        "ix_payment_history_transaction_hash", "payment_history", ["transaction_hash"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id", UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_account_id", "notifications", ["account_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("payment_history")
    op.drop_table("scheduled_payments")
    op.drop_table("accounts")
