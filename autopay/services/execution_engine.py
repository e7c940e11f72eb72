"""Execution Engine — validates, prices, submits and confirms one on-chain transfer.

Invariants:
    - execute() NEVER raises: every failure path returns ExecutionResult(success=False)
      with a human-readable error and a FailureKind
    - Validation order (first failure wins): owner/wallet on record, authorization
      derives a signer, signer address == wallet on record, amount > 0, recipient
      well-formed, recipient != sender
    - Sufficiency is checked in base units: balance >= amount + estimated fee
    - Gas estimation failure never aborts: fee falls back to FALLBACK_GAS_UNITS * price
      and the gas limit to MIN_GAS_LIMIT
    - The signer derived from `authorization` lives only inside execute()

Design Decisions:
    - Settlement side effects (history, notifications, receipts) belong to the
      orchestrating caller (services/ticker.py), keeping this class free of writes
    - verify_balance uses the fixed fallback fee: a cheap precheck that never
      simulates the transfer
"""

import logging
from decimal import Decimal

from autopay.core.domain_types import FailureKind
from autopay.core.errors import BlockchainRPCError, InvalidAuthorizationError
from autopay.core.execution_result import BalanceCheck, ExecutionResult
from autopay.core.fees import (
    check_sufficiency, estimate_fee, fee_fields, from_base_units, gas_limit_for,
    to_base_units,
)
from autopay.core.repository_protocols import AccountDirectory, BlockchainClient
from autopay.infrastructure.observability import payment_logger
from autopay.infrastructure.signing import (
    checksum, is_valid_address, load_signer, same_address,
)

logger = logging.getLogger(__name__)


def _fmt(value: Decimal) -> str:
    return f"{value:.6f}"


class ExecutionEngine:

    def __init__(
        self,
        blockchain: BlockchainClient,
        accounts: AccountDirectory,
        decimals: int = 18,
    ):
        self.blockchain = blockchain
        self.accounts = accounts
        self.decimals = decimals

    async def execute(self, payment, authorization: str) -> ExecutionResult:
        """Run one transfer for `payment`, signed with `authorization`."""
        log = payment_logger(logger, payment)
        try:
            return await self._execute(payment, authorization, log)
        except BlockchainRPCError as e:
            log.error(f"Transfer failed at RPC: {e.message}", extra={"error_code": e.code})
            return ExecutionResult.failed(
                e.message, FailureKind.TRANSIENT, rpc_method=e.rpc_method,
            )
        except Exception as e:
            log.error(f"Unexpected execution error: {e}", exc_info=True)
            return ExecutionResult.failed(
                str(e) or "Execution failed", FailureKind.TRANSIENT,
                exception=type(e).__name__,
            )

    async def _execute(self, payment, authorization: str, log) -> ExecutionResult:
        owner = await self.accounts.get_by_id(payment.owner_id)
        if owner is None or not owner.wallet_address:
            return ExecutionResult.failed("User or wallet not found", FailureKind.VALIDATION)

        try:
            signer = load_signer(authorization)
        except InvalidAuthorizationError as e:
            return ExecutionResult.failed(e.message, FailureKind.VALIDATION)
        if not same_address(signer.address, owner.wallet_address):
            return ExecutionResult.failed(
                "Private key does not match wallet address", FailureKind.VALIDATION,
            )

        amount = Decimal(payment.amount)
        if amount <= 0:
            return ExecutionResult.failed("Invalid amount", FailureKind.VALIDATION)
        if not is_valid_address(payment.recipient_address):
            return ExecutionResult.failed(
                "Invalid recipient address", FailureKind.VALIDATION,
            )
        if same_address(signer.address, payment.recipient_address):
            return ExecutionResult.failed(
                "Cannot transfer to own wallet", FailureKind.VALIDATION,
            )

        amount_wei = to_base_units(amount, self.decimals)
        tx = {
            "from": signer.address,
            "to": checksum(payment.recipient_address),
            "value": amount_wei,
        }
        balance = await self.blockchain.get_balance(signer.address)
        quote = await self.blockchain.get_fee_quote()
        try:
            gas_estimate = await self.blockchain.estimate_gas(tx)
        except BlockchainRPCError as e:
            log.warning(f"Gas estimation failed, using fallback fee: {e.message}")
            gas_estimate = None

        fee = estimate_fee(gas_estimate, quote)
        sufficiency = check_sufficiency(balance, amount_wei, fee)
        if not sufficiency.is_sufficient:
            available = from_base_units(balance, self.decimals)
            fee_native = from_base_units(fee, self.decimals)
            max_transferable = from_base_units(sufficiency.max_transferable, self.decimals)
            return ExecutionResult.failed(
                f"Insufficient balance. Available: {_fmt(available)}, "
                f"Requested: {amount.normalize():f}, "
                f"Estimated gas: {_fmt(fee_native)}. "
                f"Maximum transferable: {_fmt(max_transferable)}",
                FailureKind.INSUFFICIENT_FUNDS,
                balance=str(available),
                required=str(amount),
                gas_cost=str(fee_native),
                available=str(max_transferable),
            )

        tx["gas"] = gas_limit_for(gas_estimate)
        tx.update(fee_fields(quote))
        log.info(
            f"Sending {amount} from {signer.address} to {payment.recipient_address}",
        )
        tx_hash = await self.blockchain.submit(tx, signer)
        log.info("Transaction sent", extra={"tx_hash": tx_hash})

        receipt = await self.blockchain.wait_for_confirmation(tx_hash)
        if not receipt.succeeded:
            return ExecutionResult.failed(
                f"Transaction {tx_hash} reverted", FailureKind.TRANSIENT,
                tx_hash=tx_hash, block_number=receipt.block_number,
            )
        log.info("Transaction confirmed", extra={"tx_hash": tx_hash})
        return ExecutionResult.executed(
            tx_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
            amount=str(amount),
            from_address=signer.address,
            to_address=payment.recipient_address,
        )

    async def verify_balance(self, address: str, required_amount: Decimal) -> BalanceCheck:
        """Read-only precheck: balance against amount + fallback fee."""
        try:
            balance_wei = await self.blockchain.get_balance(address)
            quote = await self.blockchain.get_fee_quote()
        except BlockchainRPCError as e:
            logger.warning(f"Balance verification failed: {e.message}")
            return BalanceCheck(success=False, is_sufficient=False, error=e.message)

        fee = estimate_fee(None, quote)
        required_wei = to_base_units(Decimal(required_amount), self.decimals)
        sufficiency = check_sufficiency(balance_wei, required_wei, fee)
        return BalanceCheck(
            success=True,
            is_sufficient=sufficiency.is_sufficient,
            balance=from_base_units(balance_wei, self.decimals),
            required=Decimal(required_amount),
            fee_estimate=from_base_units(fee, self.decimals),
            required_total=from_base_units(sufficiency.required_total, self.decimals),
            available=from_base_units(sufficiency.max_transferable, self.decimals),
        )
