"""State Updater — persistence of post-execution transitions.

Invariants:
    - update_after_execution never raises; False when nothing was written
    - Terminal entries are not revived by late reports
    - defer() keeps the entry active without counting the attempt
"""

from datetime import timedelta
from uuid import uuid4

from autopay.core.recurrence import as_utc
from autopay.services.state_updater import StateUpdater


async def test_recurring_success_is_persisted(test_db, make_payment, clock, reload):
    payment = await make_payment(payment_type="RECURRING", frequency="weekly")

    ok = await StateUpdater(test_db, clock).update_after_execution(
        payment.id, True, None, "0xabc",
    )

    assert ok
    fresh = await reload(payment.id)
    assert fresh.status == "active"
    assert fresh.execution_count == 1
    assert as_utc(fresh.next_execution_date) == clock() + timedelta(days=7)
    assert as_utc(fresh.last_execution_date) == clock()


async def test_single_failure_is_terminal(test_db, make_payment, clock, reload):
    payment = await make_payment()

    await StateUpdater(test_db, clock).update_after_execution(payment.id, False, "boom")

    fresh = await reload(payment.id)
    assert fresh.status == "failed"
    assert fresh.next_execution_date is None
    assert fresh.last_execution_date is None


async def test_terminal_entry_is_not_revived(test_db, make_payment, clock, reload):
    payment = await make_payment(status="completed", next_execution_date=None)

    ok = await StateUpdater(test_db, clock).update_after_execution(payment.id, True)

    assert not ok
    fresh = await reload(payment.id)
    assert fresh.status == "completed"
    assert fresh.execution_count == 0


async def test_missing_entry_returns_false(test_db, clock):
    assert not await StateUpdater(test_db, clock).update_after_execution(uuid4(), True)


async def test_database_failure_is_swallowed(test_db, make_payment, clock, monkeypatch):
    payment = await make_payment()
    updater = StateUpdater(test_db, clock)

    async def broken_apply(*args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(updater.store, "apply", broken_apply)

    assert not await updater.update_after_execution(payment.id, True)


async def test_defer_keeps_single_active(test_db, make_payment, clock, reload):
    payment = await make_payment()

    await StateUpdater(test_db, clock).defer(payment.id, "Failed to decrypt private key")

    fresh = await reload(payment.id)
    assert fresh.status == "active"
    assert fresh.execution_count == 0
    assert as_utc(fresh.next_execution_date) == clock() + timedelta(minutes=5)


async def test_repeated_reports_are_each_counted(test_db, make_payment, clock, reload):
    payment = await make_payment(payment_type="RECURRING", frequency="daily")
    updater = StateUpdater(test_db, clock)

    await updater.update_after_execution(payment.id, True, None, "0xsame")
    await updater.update_after_execution(payment.id, True, None, "0xsame")

    assert (await reload(payment.id)).execution_count == 2
