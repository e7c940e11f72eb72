"""Post-Execution State Updater — persists the next status/timing after every attempt.

Invariants:
    - update_after_execution NEVER raises; it returns False when nothing was persisted
      (missing entry, database failure)
    - The transition itself is decided by core/state_transitions.py (pure); this module
      only loads, delegates and writes
    - Terminal entries are left untouched (a late report cannot revive them)

Design Decisions:
    - Clock injected so the Ticker and tests share one notion of "now"
    - transaction_id is logged, not stored: the schedule row keeps no tx reference
"""

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from autopay.core.domain_types import ScheduleStatus
from autopay.core.recurrence import utc_now
from autopay.core.state_transitions import (
    ScheduleTransition, compute_deferral, compute_transition,
)
from autopay.infrastructure.observability import payment_logger
from autopay.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class StateUpdater:

    def __init__(
        self, db: AsyncSession, clock: Callable[[], datetime] = utc_now,
    ):
        self.store = ScheduleStore(db)
        self.clock = clock

    async def update_after_execution(
        self,
        payment_id: UUID,
        executed: bool,
        error_message: str | None = None,
        transaction_id: str | None = None,
    ) -> bool:
        """Advance the entry after an execution or evaluation attempt."""
        return await self._persist(
            payment_id,
            lambda payment, now: compute_transition(payment, executed, error_message, now),
            tx_hash=transaction_id,
            error=error_message,
        )

    async def defer(self, payment_id: UUID, reason: str) -> bool:
        """Postpone after an infrastructure failure; the attempt is not counted."""
        return await self._persist(payment_id, compute_deferral, error=reason)

    async def _persist(
        self,
        payment_id: UUID,
        decide: Callable[..., ScheduleTransition],
        tx_hash: str | None = None,
        error: str | None = None,
    ) -> bool:
        try:
            payment = await self.store.get(payment_id)
            if payment is None:
                logger.warning(
                    "Scheduled payment not found for update",
                    extra={"payment_id": str(payment_id)},
                )
                return False
            log = payment_logger(logger, payment)
            if ScheduleStatus(payment.status).is_terminal:
                log.info(f"Entry already {payment.status}; update ignored")
                return False

            transition = decide(payment, self.clock())
            await self.store.apply(payment_id, transition.as_columns())
            suffix = f" ({error})" if error else ""
            log.info(
                f"Schedule updated: {transition.reason}{suffix}",
                extra={
                    "status": transition.status.value,
                    "next_execution_date": transition.next_execution_date,
                    "tx_hash": tx_hash,
                },
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to update scheduled payment: {e}",
                extra={"payment_id": str(payment_id)}, exc_info=True,
            )
            return False
