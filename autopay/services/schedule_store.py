"""Schedule Store — persistence and query surface for scheduled payments.

Invariants:
    - get_ready returns only status=active AND next_execution_date <= now
    - Ready entries come back ordered by (next_execution_date, id) so a tick's
      processing order is reproducible
    - delete() scopes by owner: another owner's id behaves like a missing id
    - apply() commits; every other write is the caller's single insert

Design Decisions:
    - Thin query object over AsyncSession (same seam the route handlers use)
    - No row locking: overlapping ticks are guarded in-process by the Ticker
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from autopay.core.domain_types import PaymentType, ScheduleStatus
from autopay.models.scheduled_payment import ScheduledPayment

logger = logging.getLogger(__name__)


class ScheduleStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, columns: dict) -> ScheduledPayment:
        payment = ScheduledPayment(**columns)
        self.db.add(payment)
        await self.db.commit()
        await self.db.refresh(payment)
        return payment

    async def get(self, payment_id: UUID) -> ScheduledPayment | None:
        result = await self.db.execute(
            select(ScheduledPayment).where(ScheduledPayment.id == payment_id),
        )
        return result.scalar_one_or_none()

    async def get_for_owner(
        self, payment_id: UUID, owner_id: UUID,
    ) -> ScheduledPayment | None:
        result = await self.db.execute(
            select(ScheduledPayment)
            .where(ScheduledPayment.id == payment_id)
            .where(ScheduledPayment.owner_id == owner_id),
        )
        return result.scalar_one_or_none()

    async def list_for_owner(self, owner_id: UUID) -> list[ScheduledPayment]:
        result = await self.db.execute(
            select(ScheduledPayment)
            .where(ScheduledPayment.owner_id == owner_id)
            .order_by(ScheduledPayment.created_at.desc()),
        )
        return list(result.scalars().all())

    async def list_active_for_owner(self, owner_id: UUID) -> list[ScheduledPayment]:
        result = await self.db.execute(
            select(ScheduledPayment)
            .where(ScheduledPayment.owner_id == owner_id)
            .where(ScheduledPayment.status == ScheduleStatus.ACTIVE.value)
            .order_by(ScheduledPayment.created_at),
        )
        return list(result.scalars().all())

    async def get_ready(
        self,
        now: datetime,
        owner_id: UUID | None = None,
        payment_types: Iterable[PaymentType] | None = None,
    ) -> list[ScheduledPayment]:
        """Due entries: active and next_execution_date <= now."""
        query = (
            select(ScheduledPayment)
            .where(ScheduledPayment.status == ScheduleStatus.ACTIVE.value)
            .where(ScheduledPayment.next_execution_date.is_not(None))
            .where(ScheduledPayment.next_execution_date <= now)
        )
        if owner_id is not None:
            query = query.where(ScheduledPayment.owner_id == owner_id)
        if payment_types is not None:
            query = query.where(
                ScheduledPayment.payment_type.in_([t.value for t in payment_types]),
            )
        query = query.order_by(
            ScheduledPayment.next_execution_date, ScheduledPayment.id,
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def apply(self, payment_id: UUID, columns: dict) -> bool:
        """Persist status/timing fields. Returns False if the entry no longer exists."""
        result = await self.db.execute(
            update(ScheduledPayment)
            .where(ScheduledPayment.id == payment_id)
            .values(**columns)
            .execution_options(synchronize_session="fetch"),
        )
        await self.db.commit()
        return result.rowcount > 0

    async def delete(self, payment_id: UUID, owner_id: UUID) -> bool:
        result = await self.db.execute(
            delete(ScheduledPayment)
            .where(ScheduledPayment.id == payment_id)
            .where(ScheduledPayment.owner_id == owner_id),
        )
        await self.db.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(
                "Scheduled payment cancelled",
                extra={"payment_id": str(payment_id), "owner_id": str(owner_id)},
            )
        return deleted
