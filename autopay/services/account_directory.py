"""Account Directory — owner lookups and automatic-payment enablement.

Invariants:
    - get_by_address matches case-insensitively (wallet addresses are hex)
    - enable_auto_pay stores authorization material only after the derived signer
      address equals the account's wallet on record
    - disable_auto_pay clears the stored material; status never exposes it

Design Decisions:
    - Account CRUD lives in the surrounding system; this service reads accounts and
      toggles the auto-pay flag
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from autopay.core.errors import (
    AuthorizationMismatchError, ErrorContext, ResourceNotFoundError,
    ScheduleValidationError,
)
from autopay.infrastructure.key_vault import KeyVault
from autopay.infrastructure.signing import load_signer, same_address
from autopay.models.account import Account

logger = logging.getLogger(__name__)


class AccountDirectory:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, owner_id: UUID) -> Account | None:
        return await self.db.get(Account, owner_id)

    async def get_by_address(self, address: str) -> Account | None:
        if not address:
            return None
        result = await self.db.execute(
            select(Account).where(
                func.lower(Account.wallet_address) == address.lower(),
            ),
        )
        return result.scalars().first()

    async def require(self, owner_id: UUID) -> Account:
        account = await self.get_by_id(owner_id)
        if account is None:
            raise ResourceNotFoundError("Account", str(owner_id))
        return account

    # ─── Automatic payments ─────────────────────────────────────

    async def enable_auto_pay(
        self, owner_id: UUID, private_key: str, vault: KeyVault,
    ) -> Account:
        account = await self.require(owner_id)
        ctx = ErrorContext(owner_id=str(owner_id), operation="enable_auto_pay")
        if not account.wallet_address:
            raise ScheduleValidationError(
                "Account has no wallet address on record", "wallet_address", ctx,
            )
        signer = load_signer(private_key)
        if not same_address(signer.address, account.wallet_address):
            raise AuthorizationMismatchError(ctx)

        account.encrypted_private_key = vault.encrypt(private_key)
        account.auto_pay_enabled = True
        await self.db.commit()
        logger.info("Automatic payments enabled", extra={"owner_id": str(owner_id)})
        return account

    async def disable_auto_pay(self, owner_id: UUID) -> Account:
        account = await self.require(owner_id)
        account.encrypted_private_key = None
        account.auto_pay_enabled = False
        await self.db.commit()
        logger.info("Automatic payments disabled", extra={"owner_id": str(owner_id)})
        return account

    async def auto_pay_status(self, owner_id: UUID) -> dict:
        account = await self.require(owner_id)
        return {
            "auto_pay_enabled": account.auto_pay_enabled,
            "has_authorization": bool(account.encrypted_private_key),
            "wallet_address": account.wallet_address,
        }
