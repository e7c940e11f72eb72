"""Execution Engine — validation order, sufficiency boundary and confirmation.

Invariants:
    - execute() never raises; failures carry a message and a FailureKind
    - balance == amount + fee is sufficient; one base unit less is not
    - Gas estimation failure falls back to the fixed fee and the minimum gas limit
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from autopay.core.domain_types import ExecutionStatus, FailureKind
from autopay.core.fees import FeeQuote, MIN_GAS_LIMIT, to_base_units
from autopay.models.scheduled_payment import ScheduledPayment
from autopay.services.account_directory import AccountDirectory
from autopay.services.execution_engine import ExecutionEngine
from tests.services.fakes import (
    EXTERNAL_ADDRESS, GWEI, RECIPIENT_ADDRESS, RECIPIENT_KEY, SENDER_ADDRESS,
    SENDER_KEY,
)

FEE_WEI = 50_000 * 20 * GWEI


@pytest.fixture
def engine(test_db, chain):
    return ExecutionEngine(chain, AccountDirectory(test_db))


# ─── Success ────────────────────────────────────────────────────


async def test_transfer_succeeds_and_reports_diagnostics(engine, chain, make_payment):
    chain.fund(SENDER_ADDRESS, "10")
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert result.success
    assert result.status is ExecutionStatus.EXECUTED
    assert result.transaction_id == f"0x{1:064x}"
    assert result.diagnostics["block_number"] == 101
    assert result.diagnostics["from_address"] == SENDER_ADDRESS
    sent = chain.submitted[0]
    assert sent["value"] == to_base_units(Decimal("5"))
    assert sent["gas"] == 60_000
    assert sent["gasPrice"] == 20 * GWEI


async def test_exact_balance_is_sufficient(engine, chain, make_payment):
    chain.fund_wei(SENDER_ADDRESS, to_base_units(Decimal("5")) + FEE_WEI)
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert result.success


async def test_one_wei_short_is_insufficient(engine, chain, make_payment):
    chain.fund_wei(SENDER_ADDRESS, to_base_units(Decimal("5")) + FEE_WEI - 1)
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert not result.success
    assert result.failure_kind is FailureKind.INSUFFICIENT_FUNDS
    assert chain.submitted == []


async def test_insufficient_message_reports_figures(engine, chain, make_payment):
    chain.fund(SENDER_ADDRESS, "4")
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert result.error == (
        "Insufficient balance. Available: 4.000000, Requested: 5, "
        "Estimated gas: 0.001000. Maximum transferable: 3.999000"
    )


async def test_gas_estimation_failure_uses_fallback(engine, chain, make_payment):
    chain.gas_estimate = None
    chain.fund(SENDER_ADDRESS, "10")
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert result.success
    assert chain.submitted[0]["gas"] == MIN_GAS_LIMIT


async def test_dynamic_fee_quote_builds_type_2_transaction(engine, chain, make_payment):
    chain.quote = FeeQuote(
        gas_price=20 * GWEI, max_fee_per_gas=30 * GWEI, max_priority_fee_per_gas=GWEI,
    )
    chain.fund(SENDER_ADDRESS, "10")
    payment = await make_payment()

    await engine.execute(payment, SENDER_KEY)

    sent = chain.submitted[0]
    assert sent["type"] == 2
    assert sent["maxFeePerGas"] == 30 * GWEI
    assert "gasPrice" not in sent


# ─── Validation ─────────────────────────────────────────────────


async def test_malformed_key_is_rejected(engine, chain, make_payment):
    chain.fund(SENDER_ADDRESS, "10")
    payment = await make_payment()

    result = await engine.execute(payment, "not-a-key")

    assert result.error == "Invalid private key format"
    assert result.failure_kind is FailureKind.VALIDATION


async def test_key_for_another_wallet_is_rejected(engine, chain, make_payment):
    chain.fund(SENDER_ADDRESS, "10")
    payment = await make_payment()

    result = await engine.execute(payment, RECIPIENT_KEY)

    assert result.error == "Private key does not match wallet address"


async def test_zero_amount_is_rejected(engine, chain, sender):
    # The table's CHECK constraint forbids storing it, so the row stays unsaved
    payment = ScheduledPayment(
        id=uuid4(), owner_id=sender.id, payment_type="SINGLE",
        recipient_address=RECIPIENT_ADDRESS, amount=Decimal("0"),
        execution_count=0, status="active",
    )

    result = await engine.execute(payment, SENDER_KEY)

    assert result.error == "Invalid amount"
    assert result.failure_kind is FailureKind.VALIDATION
    assert chain.submitted == []


async def test_malformed_recipient_is_rejected(engine, make_payment):
    payment = await make_payment(recipient_address="0x1234")
    result = await engine.execute(payment, SENDER_KEY)
    assert result.error == "Invalid recipient address"


async def test_self_transfer_is_rejected(engine, make_payment):
    payment = await make_payment(recipient_address=SENDER_ADDRESS.lower())
    result = await engine.execute(payment, SENDER_KEY)
    assert result.error == "Cannot transfer to own wallet"


async def test_missing_wallet_is_rejected(engine, make_payment, sender, test_db):
    payment = await make_payment()
    sender.wallet_address = None
    await test_db.commit()

    result = await engine.execute(payment, SENDER_KEY)

    assert result.error == "User or wallet not found"


# ─── Chain failures ─────────────────────────────────────────────


async def test_submission_failure_is_transient(engine, chain, make_payment):
    chain.fund(SENDER_ADDRESS, "10")
    chain.fail_submit = True
    payment = await make_payment(recipient_address=EXTERNAL_ADDRESS)

    result = await engine.execute(payment, SENDER_KEY)

    assert not result.success
    assert result.failure_kind is FailureKind.TRANSIENT
    assert "nonce too low" in result.error


async def test_revert_is_reported_as_failure(engine, chain, make_payment):
    chain.fund(SENDER_ADDRESS, "10")
    chain.revert = True
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert not result.success
    assert result.failure_kind is FailureKind.TRANSIENT
    assert "reverted" in result.error


async def test_balance_read_failure_never_raises(engine, chain, make_payment):
    chain.fail_balance = True
    payment = await make_payment()

    result = await engine.execute(payment, SENDER_KEY)

    assert not result.success
    assert result.diagnostics["rpc_method"] == "eth_getBalance"


# ─── Balance precheck ───────────────────────────────────────────


async def test_verify_balance_uses_fallback_fee(engine, chain):
    chain.fund(SENDER_ADDRESS, "5")

    check = await engine.verify_balance(SENDER_ADDRESS, Decimal("5"))

    assert check.success
    assert not check.is_sufficient
    assert check.fee_estimate == Decimal("0.00084")
    assert check.required_total == Decimal("5.00084")


async def test_verify_balance_sufficient(engine, chain):
    chain.fund(SENDER_ADDRESS, "6")
    check = await engine.verify_balance(RECIPIENT_ADDRESS, Decimal("1"))
    assert check.success and not check.is_sufficient
    check = await engine.verify_balance(SENDER_ADDRESS, Decimal("1"))
    assert check.is_sufficient


async def test_verify_balance_reports_rpc_failure(engine, chain):
    chain.fail_quote = True
    check = await engine.verify_balance(SENDER_ADDRESS, Decimal("1"))
    assert not check.success
    assert "eth_gasPrice" in check.error
