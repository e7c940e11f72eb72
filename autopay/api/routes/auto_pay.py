"""Automatic Payments — enable, disable and inspect unattended execution for the caller.

Invariants:
    - enable stores the key only if it derives the caller's wallet address (else 403)
    - The stored key is never returned by any route
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from autopay.api.dependencies import account_directory, current_owner_id, key_vault
from autopay.infrastructure.key_vault import KeyVault
from autopay.schemas.auto_pay import AutoPayEnable, AutoPayStatus
from autopay.services.account_directory import AccountDirectory

router = APIRouter(prefix="/api/v1/auto-pay", tags=["auto-pay"])


@router.post("/enable", response_model=AutoPayStatus)
async def enable_auto_pay(
    body: AutoPayEnable,
    owner_id: UUID = Depends(current_owner_id),
    accounts: AccountDirectory = Depends(account_directory),
    vault: KeyVault = Depends(key_vault),
):
    await accounts.enable_auto_pay(owner_id, body.private_key, vault)
    return await accounts.auto_pay_status(owner_id)


@router.post("/disable", response_model=AutoPayStatus)
async def disable_auto_pay(
    owner_id: UUID = Depends(current_owner_id),
    accounts: AccountDirectory = Depends(account_directory),
):
    await accounts.disable_auto_pay(owner_id)
    return await accounts.auto_pay_status(owner_id)


@router.get("/status", response_model=AutoPayStatus)
async def auto_pay_status(
    owner_id: UUID = Depends(current_owner_id),
    accounts: AccountDirectory = Depends(account_directory),
):
    return await accounts.auto_pay_status(owner_id)
