"""Condition Evaluator — decides whether a CONDITIONAL entry may execute now.

Invariants:
    - Returns a bool and never raises for RPC failures: an unreachable node means
      "not met" (fail-closed)
    - Unsupported predicates are False without touching the network
    - Balance comparison happens in native units (Decimal), converted from base units
      with the configured decimals
"""

import logging
from decimal import Decimal

from autopay.core.conditions import evaluate_predicate, is_supported
from autopay.core.errors import BlockchainRPCError
from autopay.core.fees import from_base_units
from autopay.core.repository_protocols import AccountDirectory, BlockchainClient
from autopay.infrastructure.observability import payment_logger

logger = logging.getLogger(__name__)


class ConditionEvaluator:

    def __init__(
        self,
        blockchain: BlockchainClient,
        accounts: AccountDirectory,
        decimals: int = 18,
    ):
        self.blockchain = blockchain
        self.accounts = accounts
        self.decimals = decimals

    async def current_balance(self, address: str) -> Decimal:
        wei = await self.blockchain.get_balance(address)
        return from_base_units(wei, self.decimals)

    async def evaluate(self, payment) -> bool:
        log = payment_logger(logger, payment)
        predicate = payment.predicate
        if not is_supported(predicate):
            log.warning(
                f"Condition not recognized, treated as not met: "
                f"{payment.condition_expression!r}",
            )
            return False

        owner = await self.accounts.get_by_id(payment.owner_id)
        if owner is None or not owner.wallet_address:
            log.warning("Owner or wallet not found for condition evaluation")
            return False

        try:
            balance = await self.current_balance(owner.wallet_address)
        except BlockchainRPCError as e:
            log.warning(
                f"Balance unavailable, condition treated as not met: {e.message}",
                extra={"error_code": e.code},
            )
            return False

        met = evaluate_predicate(predicate, balance)
        log.info(
            f"Condition evaluated: {balance} {predicate.operator} "
            f"{predicate.threshold} = {met}",
        )
        return met
