"""Ticker — periodic driver that finds due entries and runs them through the pipeline.

Invariants:
    - Two cadences: general (SINGLE/RECURRING, ~60s) and conditional (CONDITIONAL, ~30s)
    - Each tick processes its due entries SEQUENTIALLY, one awaited pipeline at a time
      (one sending account must not race itself on nonces)
    - A cadence never overlaps itself: each loop awaits its tick before sleeping
    - A payment already in flight in this process is skipped by any other tick
    - Per-payment isolation: an unexpected error is logged, reported as a failed
      attempt, and the tick moves on to the next payment
    - Ticks never raise; failures land in the summary's `error`

Design Decisions:
    - Fresh DB session per payment: a failed write cannot poison the rest of the batch
    - Clock and due-query are injected so tests drive virtual time
    - Pipeline order per payment: owner → auto-pay enabled → decrypt → balance precheck
      → execute → state update → settlement side effects
    - Infrastructure failures before any submission (decryption, balance precheck RPC)
      defer the entry instead of counting a failed attempt
    - No cross-process lease: two engine instances may pick the same entry
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autopay.core.domain_types import FailureKind, PaymentType, ScheduleStatus
from autopay.core.errors import DecryptionError
from autopay.core.recurrence import as_utc, utc_now
from autopay.core.repository_protocols import (
    BlockchainClient, KeyDecryptor, ReceiptMailer,
)
from autopay.infrastructure.observability import payment_logger
from autopay.models.scheduled_payment import ScheduledPayment
from autopay.services.account_directory import AccountDirectory
from autopay.services.condition_evaluator import ConditionEvaluator
from autopay.services.execution_engine import ExecutionEngine
from autopay.services.mailer import LoggingReceiptMailer
from autopay.services.schedule_store import ScheduleStore
from autopay.services.settlement import SettlementRecorder
from autopay.services.state_updater import StateUpdater

logger = logging.getLogger(__name__)

GENERAL_TYPES = (PaymentType.SINGLE, PaymentType.RECURRING)
CONDITIONAL_TYPES = (PaymentType.CONDITIONAL,)

DueQuery = Callable[
    [AsyncSession, datetime, Sequence[PaymentType]],
    Awaitable[list[ScheduledPayment]],
]


async def default_due_query(
    db: AsyncSession, now: datetime, payment_types: Sequence[PaymentType],
) -> list[ScheduledPayment]:
    return await ScheduleStore(db).get_ready(now, payment_types=payment_types)


def _outcome(
    payment, success: bool, error: str | None = None,
    transaction_id: str | None = None, failure_kind: FailureKind | None = None,
    deferred: bool = False,
) -> dict:
    return {
        "payment_id": str(payment.id),
        "payment_type": payment.payment_type,
        "success": success,
        "transaction_id": transaction_id,
        "error": error,
        "failure_kind": failure_kind.value if failure_kind else None,
        "deferred": deferred,
    }


class Ticker:
    """Runs due scheduled payments on two independent cadences."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        blockchain: BlockchainClient,
        key_vault: KeyDecryptor,
        mailer: ReceiptMailer | None = None,
        clock: Callable[[], datetime] = utc_now,
        due_query: DueQuery = default_due_query,
        general_interval: float = 60.0,
        conditional_interval: float = 30.0,
        decimals: int = 18,
        currency_symbol: str = "USDC",
    ):
        self.session_factory = session_factory
        self.blockchain = blockchain
        self.key_vault = key_vault
        self.mailer = mailer or LoggingReceiptMailer()
        self.clock = clock
        self.due_query = due_query
        self.general_interval = general_interval
        self.conditional_interval = conditional_interval
        self.decimals = decimals
        self.currency_symbol = currency_symbol
        self._in_flight: set[UUID] = set()
        self._tasks: list[asyncio.Task] = []

    # ─── Ticks ──────────────────────────────────────────────────

    async def run_tick(self) -> dict:
        """General tick: due SINGLE and RECURRING entries."""
        return await self._run("general", GENERAL_TYPES, conditional=False)

    async def run_conditional_tick(self) -> dict:
        """Conditional tick: due CONDITIONAL entries, gated by their predicate."""
        return await self._run("conditional", CONDITIONAL_TYPES, conditional=True)

    async def run_manual_tick(self) -> dict:
        general = await self.run_tick()
        conditional = await self.run_conditional_tick()
        return {
            "processed": general["processed"],
            "conditional_processed": conditional["processed"],
            "payments": general["payments"],
            "conditional": conditional["payments"],
            "error": general.get("error") or conditional.get("error"),
        }

    async def _run(
        self, name: str, payment_types: Sequence[PaymentType], conditional: bool,
    ) -> dict:
        try:
            async with self.session_factory() as db:
                due = await self.due_query(db, self.clock(), payment_types)
                due_ids = [payment.id for payment in due]
        except Exception as e:
            logger.error(f"Tick failed to load due payments: {e}", extra={"tick": name})
            return {"processed": 0, "payments": [], "error": str(e)}

        logger.info(f"Tick: {len(due_ids)} payments due", extra={"tick": name})
        outcomes = []
        for payment_id in due_ids:
            outcome = await self._process(payment_id, conditional)
            if outcome is not None:
                outcomes.append(outcome)
        return {"processed": len(outcomes), "payments": outcomes}

    # ─── Per-payment pipeline ───────────────────────────────────

    async def _process(self, payment_id: UUID, conditional: bool) -> dict | None:
        if payment_id in self._in_flight:
            logger.info(
                "Payment already in flight, skipped",
                extra={"payment_id": str(payment_id)},
            )
            return None
        self._in_flight.add(payment_id)
        try:
            async with self.session_factory() as db:
                return await self._process_in_session(db, payment_id, conditional)
        except Exception as e:
            logger.error(
                f"Unexpected error processing payment: {e}",
                extra={"payment_id": str(payment_id)}, exc_info=True,
            )
            async with self.session_factory() as db:
                await StateUpdater(db, self.clock).update_after_execution(
                    payment_id, False, str(e),
                )
            return {
                "payment_id": str(payment_id),
                "payment_type": None,
                "success": False,
                "transaction_id": None,
                "error": str(e),
                "failure_kind": FailureKind.TRANSIENT.value,
                "deferred": False,
            }
        finally:
            self._in_flight.discard(payment_id)

    async def _process_in_session(
        self, db: AsyncSession, payment_id: UUID, conditional: bool,
    ) -> dict | None:
        payment = await ScheduleStore(db).get(payment_id)
        if payment is None or not self._still_due(payment):
            return None

        accounts = AccountDirectory(db)
        updater = StateUpdater(db, self.clock)
        if conditional:
            evaluator = ConditionEvaluator(self.blockchain, accounts, self.decimals)
            if not await evaluator.evaluate(payment):
                await updater.update_after_execution(payment.id, False, "Condition not met")
                return _outcome(payment, False, "Condition not met")
        return await self._execute(db, payment, accounts, updater)

    def _still_due(self, payment: ScheduledPayment) -> bool:
        return (
            payment.status == ScheduleStatus.ACTIVE.value
            and payment.next_execution_date is not None
            and as_utc(payment.next_execution_date) <= self.clock()
        )

    async def _execute(
        self,
        db: AsyncSession,
        payment: ScheduledPayment,
        accounts: AccountDirectory,
        updater: StateUpdater,
    ) -> dict:
        log = payment_logger(logger, payment)
        log.info("Executing scheduled payment")

        async def fail(error: str, kind: FailureKind) -> dict:
            log.warning(f"Payment not executed: {error}", extra={"failure_kind": kind.value})
            await updater.update_after_execution(payment.id, False, error)
            return _outcome(payment, False, error, failure_kind=kind)

        async def defer(error: str, kind: FailureKind) -> dict:
            log.warning(f"Payment deferred: {error}", extra={"failure_kind": kind.value})
            await updater.defer(payment.id, error)
            return _outcome(payment, False, error, failure_kind=kind, deferred=True)

        owner = await accounts.get_by_id(payment.owner_id)
        if owner is None or not owner.wallet_address:
            return await fail("User or wallet not found", FailureKind.VALIDATION)
        if not owner.auto_pay_enabled or not owner.encrypted_private_key:
            return await fail("Automatic payments not enabled", FailureKind.VALIDATION)

        try:
            authorization = self.key_vault.decrypt(owner.encrypted_private_key)
        except DecryptionError as e:
            return await defer(e.message, FailureKind.DECRYPTION)

        engine = ExecutionEngine(self.blockchain, accounts, self.decimals)
        check = await engine.verify_balance(owner.wallet_address, payment.amount)
        if not check.success:
            return await defer(
                f"Balance check failed: {check.error}", FailureKind.CONFIGURATION,
            )
        if not check.is_sufficient:
            return await fail(
                f"Insufficient balance: available {check.balance}, "
                f"required {check.required_total}",
                FailureKind.INSUFFICIENT_FUNDS,
            )

        result = await engine.execute(payment, authorization)
        del authorization
        if not result.success:
            return await fail(result.error, result.failure_kind)

        log.info("Payment executed", extra={"tx_hash": result.transaction_id})
        await updater.update_after_execution(
            payment.id, True, None, result.transaction_id,
        )
        outcome = _outcome(payment, True, transaction_id=result.transaction_id)
        # The transfer is persisted as executed; nothing past this point may
        # report a failure for it.
        try:
            await SettlementRecorder(
                db, accounts, self.mailer, self.currency_symbol,
            ).record(payment, owner, result.transaction_id)
        except Exception as e:
            logger.error(
                f"Settlement failed after confirmed transfer: {e}",
                extra={
                    "payment_id": outcome["payment_id"],
                    "tx_hash": result.transaction_id,
                },
                exc_info=True,
            )
        return outcome

    # ─── Background loops ───────────────────────────────────────

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(
                self._loop("general", self.run_tick, self.general_interval),
            ),
            asyncio.create_task(
                self._loop(
                    "conditional", self.run_conditional_tick, self.conditional_interval,
                ),
            ),
        ]
        logger.info(
            f"Scheduler started (general every {self.general_interval}s, "
            f"conditional every {self.conditional_interval}s)",
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Scheduler stopped")

    async def _loop(
        self, name: str, tick: Callable[[], Awaitable[dict]], interval: float,
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            summary = await tick()
            if summary.get("error"):
                logger.error(f"Tick error: {summary['error']}", extra={"tick": name})
