"""Resilient Chain Client — wraps AsyncWeb3 with per-call timeouts, read retries and error mapping.

Invariants:
    - Every RPC call is bounded by a timeout (rpc_timeout_seconds; confirmation waits
      use rpc_confirmation_timeout_seconds)
    - Read calls (balance, gas estimate, fee data) retry transient failures with
      exponential backoff, at most max_retries times
    - Transaction submission is NEVER retried: a timed-out send may still have been
      broadcast, and a resend would risk a double transfer
    - All failures surface as BlockchainRPCError (core/errors.py)

Design Decisions:
    - ±25% jitter on backoff: parallel ticks do not hammer a recovering node in lockstep
    - Fee quote mirrors the usual EIP-1559 heuristic: max fee = 2 * base fee + priority
      fee; legacy gas price kept for chains without a base fee
    - Signing happens locally (eth-account); the node only ever sees raw transactions
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, Web3Exception

from autopay.core.domain_types import TxHash
from autopay.core.errors import BlockchainRPCError
from autopay.core.fees import FeeQuote
from autopay.core.repository_protocols import TransferReceipt

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection resets and aiohttp connector errors are OSError subclasses.
_TRANSIENT = (asyncio.TimeoutError, ConnectionError, OSError)


class Web3BlockchainClient:
    """BlockchainClient implementation over a JSON-RPC HTTP endpoint."""

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 30.0,
        confirmation_timeout_seconds: float = 180.0,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 10_000,
        w3: AsyncWeb3 | None = None,
    ):
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.timeout_seconds = timeout_seconds
        self.confirmation_timeout_seconds = confirmation_timeout_seconds
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    # ─── Reads (retried) ────────────────────────────────────────

    async def get_balance(self, address: str) -> int:
        return await self._read(
            "eth_getBalance",
            lambda: self.w3.eth.get_balance(Web3.to_checksum_address(address)),
        )

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        return await self._read("eth_estimateGas", lambda: self.w3.eth.estimate_gas(tx))

    async def get_fee_quote(self) -> FeeQuote:
        gas_price = await self._read("eth_gasPrice", lambda: self.w3.eth.gas_price)
        block = await self._read(
            "eth_getBlockByNumber", lambda: self.w3.eth.get_block("latest"),
        )
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeQuote(gas_price=gas_price)
        priority = await self._read(
            "eth_maxPriorityFeePerGas", lambda: self.w3.eth.max_priority_fee,
        )
        return FeeQuote(
            gas_price=gas_price,
            max_fee_per_gas=base_fee * 2 + priority,
            max_priority_fee_per_gas=priority,
        )

    # ─── Writes (never retried) ─────────────────────────────────

    async def submit(self, tx: dict[str, Any], signer) -> TxHash:
        """Fill nonce and chain id, sign locally, broadcast once. Returns the tx hash."""
        prepared = dict(tx)
        prepared.setdefault("from", signer.address)
        prepared["nonce"] = await self._read(
            "eth_getTransactionCount",
            lambda: self.w3.eth.get_transaction_count(signer.address, "pending"),
        )
        prepared["chainId"] = await self._read("eth_chainId", lambda: self.w3.eth.chain_id)
        signed = signer.sign_transaction(prepared)
        tx_hash = await self._once(
            "eth_sendRawTransaction",
            lambda: self.w3.eth.send_raw_transaction(signed.raw_transaction),
        )
        return TxHash(Web3.to_hex(tx_hash))

    async def wait_for_confirmation(self, tx_hash: TxHash) -> TransferReceipt:
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout_seconds,
            )
        except TimeExhausted:
            raise BlockchainRPCError(
                f"Transaction {tx_hash} not confirmed within "
                f"{self.confirmation_timeout_seconds}s",
                "eth_getTransactionReceipt",
            )
        except (Web3Exception, ValueError, *_TRANSIENT) as e:
            raise BlockchainRPCError(str(e), "eth_getTransactionReceipt")
        return TransferReceipt(
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            succeeded=receipt.get("status", 1) == 1,
        )

    # ─── Call helpers ───────────────────────────────────────────

    async def _once(self, method: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise BlockchainRPCError(
                f"Timed out after {self.timeout_seconds}s", method,
            )
        except (Web3Exception, ValueError) as e:
            raise BlockchainRPCError(str(e), method)
        except _TRANSIENT as e:
            raise BlockchainRPCError(f"Connection error: {e}", method)

    async def _read(self, method: str, call: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
            except (Web3Exception, ValueError) as e:
                # Node rejected the request; repeating it will not help.
                raise BlockchainRPCError(str(e), method)
            except _TRANSIENT as e:
                if attempt >= self.max_retries:
                    raise BlockchainRPCError(
                        f"Transient failure after {self.max_retries} retries: {e!r}",
                        method,
                        retry_after_ms=self._backoff(attempt),
                    )
                delay = self._backoff(attempt)
                logger.warning(
                    f"RPC {method} failed, retry after {delay}ms: {e!r}",
                    extra={"attempt": attempt + 1},
                )
                await asyncio.sleep(delay / 1000)
        raise BlockchainRPCError("Retry loop exhausted", method)

    def _backoff(self, attempt: int) -> int:
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
