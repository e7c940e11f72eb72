"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection (tests inject fakes)

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these protocols are never async themselves
    - Blockchain amounts cross this boundary in base units (int); conversion to
      Decimal happens in the shell with the configured decimals
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from autopay.core.domain_types import TxHash
from autopay.core.fees import FeeQuote


class ScheduleLike(Protocol):
    """Structural contract for ScheduledPayment rows passed to pure transition logic."""
    payment_type: str
    frequency: str | None
    end_date: datetime | None
    max_executions: int | None
    execution_count: int
    last_execution_date: datetime | None


class OwnerLike(Protocol):
    """Structural contract for an owner/account record."""
    id: UUID
    email: str
    display_name: str
    wallet_address: str | None
    auto_pay_enabled: bool
    encrypted_private_key: str | None


@dataclass(frozen=True)
class TransferReceipt:
    """Confirmed on-chain transfer."""
    tx_hash: TxHash
    block_number: int
    gas_used: int
    succeeded: bool = True


class BlockchainClient(Protocol):
    """Contract for the chain RPC — implemented by infrastructure/blockchain_client.py."""
    async def get_balance(self, address: str) -> int: ...
    async def estimate_gas(self, tx: dict[str, Any]) -> int: ...
    async def get_fee_quote(self) -> FeeQuote: ...
    async def submit(self, tx: dict[str, Any], signer: Any) -> TxHash: ...
    async def wait_for_confirmation(self, tx_hash: TxHash) -> TransferReceipt: ...


class AccountDirectory(Protocol):
    """Contract for owner lookups — implemented by services/account_directory.py."""
    async def get_by_id(self, owner_id: UUID) -> OwnerLike | None: ...
    async def get_by_address(self, address: str) -> OwnerLike | None: ...


class KeyDecryptor(Protocol):
    """Contract for recovering signing material stored encrypted at rest."""
    def decrypt(self, token: str) -> str: ...


class ReceiptMailer(Protocol):
    """Contract for payment receipt delivery (delivery itself is external)."""
    async def send_receipt(
        self,
        email: str,
        display_name: str,
        amount: Decimal,
        counterparty: str,
        tx_hash: str,
        direction: str,
    ) -> None: ...
