"""Settlement Recorder — history rows, notifications and receipts after a transfer.

Invariants:
    - Outbound history and notice always written for the sender
    - Inbound rows only when the recipient is a known account
    - A failing step does not stop the remaining steps
"""

from sqlalchemy import select

from autopay.models.notification import Notification
from autopay.models.payment_history import PaymentHistory
from autopay.services.account_directory import AccountDirectory
from autopay.services.settlement import SettlementRecorder, short_address
from tests.services.fakes import EXTERNAL_ADDRESS

TX = "0x" + "ab" * 32


async def _rows(db, model):
    return list((await db.execute(select(model))).scalars().all())


async def test_known_recipient_gets_inbound_records(
    test_db, make_payment, sender, recipient, mailer,
):
    payment = await make_payment()

    await SettlementRecorder(test_db, AccountDirectory(test_db), mailer).record(
        payment, sender, TX,
    )

    history = await _rows(test_db, PaymentHistory)
    assert sorted(h.direction for h in history) == ["inbound", "outbound"]
    assert all(h.transaction_hash == TX for h in history)
    notices = {n.kind: n for n in await _rows(test_db, Notification)}
    assert notices["payment_outbound"].title == "Automatic Payment Sent"
    assert notices["payment_outbound"].message == (
        "Your scheduled payment of 5 USDC to bob was sent automatically"
    )
    assert notices["payment_inbound"].account_id == recipient.id
    assert notices["payment_inbound"].message == "You received 5 USDC from alice"
    assert [m["direction"] for m in mailer.sent] == ["inbound", "outbound"]


async def test_external_recipient_only_outbound(test_db, make_payment, sender, mailer):
    payment = await make_payment(recipient_address=EXTERNAL_ADDRESS)

    await SettlementRecorder(test_db, AccountDirectory(test_db), mailer).record(
        payment, sender, TX,
    )

    history = await _rows(test_db, PaymentHistory)
    assert [h.direction for h in history] == ["outbound"]
    notice = (await _rows(test_db, Notification))[0]
    assert short_address(EXTERNAL_ADDRESS) in notice.message
    assert [m["email"] for m in mailer.sent] == ["alice@example.com"]


async def test_mailer_failure_keeps_records(
    test_db, make_payment, sender, recipient, mailer,
):
    mailer.fail = True
    payment = await make_payment()

    await SettlementRecorder(test_db, AccountDirectory(test_db), mailer).record(
        payment, sender, TX,
    )

    assert len(await _rows(test_db, PaymentHistory)) == 2
    assert len(await _rows(test_db, Notification)) == 2


def test_short_address():
    assert short_address(EXTERNAL_ADDRESS) == "0x3C44CdDd..."
