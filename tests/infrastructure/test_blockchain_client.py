"""Resilient Chain Client — retries, timeouts, fee quotes and single-shot sends.

Invariants:
    - Transient read failures are retried up to max_retries, then surface as
      BlockchainRPCError
    - Node rejections (ValueError) are not retried
    - send_raw_transaction is attempted exactly once
"""

import asyncio
from collections import Counter

import pytest
from eth_account import Account
from web3.exceptions import TimeExhausted

from autopay.core.errors import BlockchainRPCError
from autopay.infrastructure.blockchain_client import Web3BlockchainClient

SENDER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
GWEI = 10**9


class FakeEth:
    """Scripted stand-in for AsyncWeb3.eth."""

    def __init__(self):
        self.calls = Counter()
        self.balance_errors: list[Exception] = []
        self.balance_delay = 0.0
        self.base_fee: int | None = 10 * GWEI
        self.send_error: Exception | None = None
        self.receipt: dict | Exception = {"blockNumber": 7, "gasUsed": 21_000, "status": 1}

    async def get_balance(self, address):
        self.calls["get_balance"] += 1
        if self.balance_delay:
            await asyncio.sleep(self.balance_delay)
        if self.balance_errors:
            raise self.balance_errors.pop(0)
        return 3 * 10**18

    async def estimate_gas(self, tx):
        return 21_000

    async def _value(self, name, value):
        self.calls[name] += 1
        return value

    @property
    def gas_price(self):
        return self._value("gas_price", 20 * GWEI)

    @property
    def max_priority_fee(self):
        return self._value("max_priority_fee", GWEI)

    @property
    def chain_id(self):
        return self._value("chain_id", 31337)

    async def get_block(self, ident):
        block = {"number": 1}
        if self.base_fee is not None:
            block["baseFeePerGas"] = self.base_fee
        return block

    async def get_transaction_count(self, address, block):
        return 4

    async def send_raw_transaction(self, raw):
        self.calls["send_raw_transaction"] += 1
        if self.send_error:
            raise self.send_error
        return b"\x12" * 32

    async def wait_for_transaction_receipt(self, tx_hash, timeout):
        if isinstance(self.receipt, Exception):
            raise self.receipt
        return self.receipt


class FakeWeb3:
    def __init__(self):
        self.eth = FakeEth()


@pytest.fixture
def w3():
    return FakeWeb3()


@pytest.fixture
def client(w3):
    return Web3BlockchainClient(
        "http://unused", timeout_seconds=0.5, max_retries=2, base_delay_ms=0, w3=w3,
    )


# ─── Reads ──────────────────────────────────────────────────────


async def test_balance_retries_transient_failures(client, w3):
    w3.eth.balance_errors = [ConnectionError("reset"), OSError("refused")]

    balance = await client.get_balance(RECIPIENT.lower())

    assert balance == 3 * 10**18
    assert w3.eth.calls["get_balance"] == 3


async def test_balance_gives_up_after_max_retries(client, w3):
    w3.eth.balance_errors = [ConnectionError("reset")] * 3

    with pytest.raises(BlockchainRPCError) as exc:
        await client.get_balance(RECIPIENT)

    assert exc.value.rpc_method == "eth_getBalance"
    assert w3.eth.calls["get_balance"] == 3


async def test_node_rejection_is_not_retried(client, w3):
    w3.eth.balance_errors = [ValueError("invalid params")]

    with pytest.raises(BlockchainRPCError):
        await client.get_balance(RECIPIENT)

    assert w3.eth.calls["get_balance"] == 1


async def test_slow_read_times_out(w3):
    w3.eth.balance_delay = 1.0
    client = Web3BlockchainClient("http://unused", timeout_seconds=0.01, max_retries=0, w3=w3)

    with pytest.raises(BlockchainRPCError):
        await client.get_balance(RECIPIENT)


async def test_fee_quote_with_base_fee(client):
    quote = await client.get_fee_quote()

    assert quote.gas_price == 20 * GWEI
    assert quote.max_priority_fee_per_gas == GWEI
    assert quote.max_fee_per_gas == 21 * GWEI
    assert quote.supports_dynamic_fees


async def test_fee_quote_without_base_fee(client, w3):
    w3.eth.base_fee = None

    quote = await client.get_fee_quote()

    assert quote.gas_price == 20 * GWEI
    assert not quote.supports_dynamic_fees
    assert w3.eth.calls["max_priority_fee"] == 0


def test_backoff_is_jittered_and_capped():
    client = Web3BlockchainClient(
        "http://unused", base_delay_ms=500, max_delay_ms=2_000, w3=FakeWeb3(),
    )
    assert 750 <= client._backoff(1) <= 1250
    assert client._backoff(10) <= 2_500


# ─── Writes ─────────────────────────────────────────────────────


def _transfer():
    return {"to": RECIPIENT, "value": 10**18, "gas": 21_000, "gasPrice": 20 * GWEI}


async def test_submit_signs_and_returns_hash(client, w3):
    tx_hash = await client.submit(_transfer(), Account.from_key(SENDER_KEY))

    assert tx_hash == "0x" + "12" * 32
    assert w3.eth.calls["send_raw_transaction"] == 1


async def test_submit_is_never_retried(client, w3):
    w3.eth.send_error = ConnectionError("reset")

    with pytest.raises(BlockchainRPCError) as exc:
        await client.submit(_transfer(), Account.from_key(SENDER_KEY))

    assert exc.value.rpc_method == "eth_sendRawTransaction"
    assert w3.eth.calls["send_raw_transaction"] == 1


async def test_confirmation_receipt(client):
    receipt = await client.wait_for_confirmation("0xabc")
    assert receipt.succeeded
    assert receipt.block_number == 7


async def test_reverted_receipt(client, w3):
    w3.eth.receipt = {"blockNumber": 8, "gasUsed": 30_000, "status": 0}
    assert not (await client.wait_for_confirmation("0xabc")).succeeded


async def test_confirmation_timeout(client, w3):
    w3.eth.receipt = TimeExhausted("not mined")

    with pytest.raises(BlockchainRPCError) as exc:
        await client.wait_for_confirmation("0xabc")

    assert "not confirmed" in exc.value.message
