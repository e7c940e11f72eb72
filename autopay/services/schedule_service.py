"""Schedule Service — create, read, cancel and externally settle scheduled payments.

Invariants:
    - create_schedule performs exactly one insert and no network or execution
    - Every read and cancel is scoped to the owner; another owner's id is "not found"
    - match_external_transfer reports a success for at most one active entry
      (same recipient case-insensitively, same amount)

Design Decisions:
    - Column mapping and timing policy come from core/schedule_planner.py (pure);
      this class only checks the owner exists and persists
    - Unsupported conditions are accepted and logged: they never execute (fail-closed),
      and rejecting them would hide the entry from its owner
    - External matches are not deduplicated by tx hash (see DESIGN.md)
"""

import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from autopay.core.conditions import is_supported, parse_condition
from autopay.core.errors import (
    ErrorContext, ResourceNotFoundError, ScheduleValidationError,
)
from autopay.core.recurrence import utc_now
from autopay.core.schedule_planner import (
    ScheduleDecision, TransferRequest, plan_schedule,
)
from autopay.infrastructure.signing import is_valid_address, same_address
from autopay.models.scheduled_payment import ScheduledPayment
from autopay.services.account_directory import AccountDirectory
from autopay.services.schedule_store import ScheduleStore
from autopay.services.state_updater import StateUpdater

logger = logging.getLogger(__name__)


class ScheduleService:

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.store = ScheduleStore(db)
        self.accounts = AccountDirectory(db)

    async def create_schedule(
        self, request: TransferRequest, decision: ScheduleDecision,
    ) -> ScheduledPayment:
        await self.accounts.require(request.owner_id)
        if not is_valid_address(request.recipient_address):
            raise ScheduleValidationError(
                "recipient_address is not a valid address", "recipient_address",
                ErrorContext(owner_id=str(request.owner_id), operation="create_schedule"),
            )

        columns = plan_schedule(request, decision, self.clock())
        payment = await self.store.insert(columns)
        if decision.condition and not is_supported(parse_condition(decision.condition.strip())):
            logger.warning(
                f"Condition {decision.condition!r} is not supported and will never be met",
                extra={"payment_id": str(payment.id), "owner_id": str(payment.owner_id)},
            )
        logger.info(
            "Scheduled payment created",
            extra={
                "payment_id": str(payment.id),
                "owner_id": str(payment.owner_id),
                "payment_type": payment.payment_type,
                "next_execution_date": payment.next_execution_date,
            },
        )
        return payment

    async def get_schedule(self, owner_id: UUID, payment_id: UUID) -> ScheduledPayment:
        payment = await self.store.get_for_owner(payment_id, owner_id)
        if payment is None:
            raise ResourceNotFoundError("ScheduledPayment", str(payment_id))
        return payment

    async def list_schedules(self, owner_id: UUID) -> list[ScheduledPayment]:
        return await self.store.list_for_owner(owner_id)

    async def get_ready_payments(
        self, owner_id: UUID | None = None,
    ) -> list[ScheduledPayment]:
        return await self.store.get_ready(self.clock(), owner_id=owner_id)

    async def cancel_schedule(self, owner_id: UUID, payment_id: UUID) -> bool:
        return await self.store.delete(payment_id, owner_id)

    async def match_external_transfer(
        self, owner_id: UUID, to_address: str, amount: Decimal, tx_hash: str | None = None,
    ) -> ScheduledPayment | None:
        """Count a transfer made outside the engine against a matching active entry."""
        for payment in await self.store.list_active_for_owner(owner_id):
            if same_address(payment.recipient_address, to_address) and (
                Decimal(payment.amount) == Decimal(amount)
            ):
                logger.info(
                    "External transfer matches scheduled payment",
                    extra={"payment_id": str(payment.id), "tx_hash": tx_hash},
                )
                await StateUpdater(self.db, self.clock).update_after_execution(
                    payment.id, True, None, tx_hash,
                )
                await self.db.refresh(payment)
                return payment
        return None
