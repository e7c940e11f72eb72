"""Settlement Recorder — best-effort bookkeeping after a confirmed transfer.

Invariants:
    - Runs only after on-chain confirmation; nothing here can undo or fail the transfer
    - Each step (sender history, sender notice, recipient history + notice, receipts)
      is isolated: a failing step is logged and rolled back, the rest still run
    - Inbound rows are written only when the recipient address belongs to a known account

Design Decisions:
    - One commit per step so an early failure cannot discard a later, independent write
    - Counterparty labels fall back to a shortened address for unknown accounts
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from autopay.core.domain_types import TransferDirection
from autopay.core.repository_protocols import AccountDirectory, ReceiptMailer
from autopay.models.notification import Notification
from autopay.models.payment_history import PaymentHistory

logger = logging.getLogger(__name__)


def short_address(address: str) -> str:
    return f"{address[:10]}..."


@dataclass(frozen=True)
class _Snapshot:
    payment_id: UUID
    amount: Decimal
    to_address: str
    sender_id: UUID
    sender_email: str
    sender_name: str | None
    from_address: str


class SettlementRecorder:

    def __init__(
        self,
        db: AsyncSession,
        accounts: AccountDirectory,
        mailer: ReceiptMailer,
        currency_symbol: str = "USDC",
    ):
        self.db = db
        self.accounts = accounts
        self.mailer = mailer
        self.currency_symbol = currency_symbol

    async def record(self, payment, sender, tx_hash: str) -> None:
        # Plain values up front: a step's rollback expires every loaded instance.
        entry = _Snapshot(
            payment_id=payment.id,
            amount=Decimal(payment.amount),
            to_address=payment.recipient_address,
            sender_id=sender.id,
            sender_email=sender.email,
            sender_name=sender.display_name,
            from_address=sender.wallet_address,
        )
        recipient = await self._safe_lookup(entry.to_address, tx_hash)
        recipient_id = recipient.id if recipient else None
        recipient_email = recipient.email if recipient else None
        recipient_name = recipient.display_name if recipient else None
        display_amount = f"{entry.amount.normalize():f}"
        recipient_label = recipient_name or short_address(entry.to_address)
        sender_label = entry.sender_name or short_address(entry.from_address)

        await self._step("outbound history", tx_hash, lambda: self._add(
            self._history(entry, entry.sender_id, tx_hash, TransferDirection.OUTBOUND),
        ))
        await self._step("outbound notification", tx_hash, lambda: self._add(Notification(
            account_id=entry.sender_id,
            kind="payment_outbound",
            title="Automatic Payment Sent",
            message=(
                f"Your scheduled payment of {display_amount} {self.currency_symbol} "
                f"to {recipient_label} was sent automatically"
            ),
        )))

        if recipient_id is not None:
            await self._step("inbound notification", tx_hash, lambda: self._add(Notification(
                account_id=recipient_id,
                kind="payment_inbound",
                title="Payment Received",
                message=(
                    f"You received {display_amount} {self.currency_symbol} "
                    f"from {sender_label}"
                ),
            )))
            await self._step("inbound history", tx_hash, lambda: self._add(
                self._history(entry, recipient_id, tx_hash, TransferDirection.INBOUND),
            ))
            await self._step("recipient receipt", tx_hash, lambda: self.mailer.send_receipt(
                recipient_email, recipient_name, entry.amount.normalize(), sender_label,
                tx_hash, TransferDirection.INBOUND.value,
            ))

        await self._step("sender receipt", tx_hash, lambda: self.mailer.send_receipt(
            entry.sender_email, entry.sender_name, entry.amount.normalize(),
            short_address(entry.to_address),
            tx_hash, TransferDirection.OUTBOUND.value,
        ))

    @staticmethod
    def _history(entry, account_id, tx_hash: str, direction: TransferDirection):
        return PaymentHistory(
            account_id=account_id,
            scheduled_payment_id=entry.payment_id,
            from_address=entry.from_address,
            to_address=entry.to_address,
            amount=entry.amount,
            transaction_hash=tx_hash,
            direction=direction.value,
        )

    async def _add(self, row) -> None:
        self.db.add(row)
        await self.db.commit()

    async def _safe_lookup(self, address: str, tx_hash: str):
        try:
            return await self.accounts.get_by_address(address)
        except Exception as e:
            logger.error(
                f"Recipient lookup failed, treating as external address: {e}",
                extra={"tx_hash": tx_hash},
            )
            await self.db.rollback()
            return None

    async def _step(
        self, name: str, tx_hash: str, action: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await action()
        except Exception as e:
            logger.error(
                f"Settlement step '{name}' failed: {e}",
                extra={"tx_hash": tx_hash}, exc_info=True,
            )
            await self.db.rollback()
