"""Service test fixtures — in-memory DB, fake collaborators, Ticker and API client.

Invariants:
    - Every test gets a fresh in-memory SQLite database shared by all its sessions
    - Blockchain, clock and mailer are fakes (tests/services/fakes.py)
    - get_db overridden and db_manager patched so routes and probes hit the test DB

Design Decisions:
    - StaticPool: one connection, so sessions opened by the Ticker see the same
      in-memory database as the fixtures
    - ASGITransport does not run the lifespan; the client fixture sets app.state itself
"""

from decimal import Decimal

import pytest
from cryptography.fernet import Fernet
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import autopay.infrastructure.database as db_module
from autopay.db.base import Base
import autopay.models  # noqa: F401
from autopay.api.dependencies import schedule_service
from autopay.infrastructure.database import DatabaseSessionManager, get_db
from autopay.infrastructure.key_vault import KeyVault
from autopay.main import app
from autopay.models.account import Account
from autopay.models.scheduled_payment import ScheduledPayment
from autopay.services.schedule_service import ScheduleService
from autopay.services.ticker import Ticker
from tests.services.fakes import (
    RECIPIENT_ADDRESS, SENDER_ADDRESS, SENDER_KEY,
    FakeBlockchain, FakeClock, RecordingMailer,
)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain():
    return FakeBlockchain()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def vault():
    return KeyVault(Fernet.generate_key())


@pytest.fixture
async def sender(test_db, vault):
    """Account with automatic payments enabled for SENDER_ADDRESS."""
    account = Account(
        email="alice@example.com",
        display_name="alice",
        wallet_address=SENDER_ADDRESS,
        auto_pay_enabled=True,
        encrypted_private_key=vault.encrypt(SENDER_KEY),
    )
    test_db.add(account)
    await test_db.commit()
    await test_db.refresh(account)
    return account


@pytest.fixture
async def recipient(test_db):
    """Known account at RECIPIENT_ADDRESS (auto-pay off)."""
    account = Account(
        email="bob@example.com",
        display_name="bob",
        wallet_address=RECIPIENT_ADDRESS,
    )
    test_db.add(account)
    await test_db.commit()
    await test_db.refresh(account)
    return account


@pytest.fixture
def ticker(test_session_factory, chain, vault, mailer, clock):
    return Ticker(test_session_factory, chain, vault, mailer=mailer, clock=clock)


@pytest.fixture
async def client(test_engine, test_session_factory, ticker, vault, clock):
    """FastAPI test client bound to the test DB and fake collaborators."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    async def override_schedule_service(db=Depends(get_db)):
        return ScheduleService(db, clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[schedule_service] = override_schedule_service
    original_manager = db_module.db_manager
    db_module.db_manager = DatabaseSessionManager("sqlite+aiosqlite://", engine=test_engine)
    app.state.ticker = ticker
    app.state.key_vault = vault

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def make_payment(test_db, sender, clock):
    """Insert a scheduled payment owned by `sender`, due now unless overridden."""
    async def _make(**overrides) -> ScheduledPayment:
        columns = {
            "owner_id": sender.id,
            "payment_type": "SINGLE",
            "recipient_address": RECIPIENT_ADDRESS,
            "amount": Decimal("5"),
            "next_execution_date": clock(),
            "execution_count": 0,
            "status": "active",
            **overrides,
        }
        payment = ScheduledPayment(**columns)
        test_db.add(payment)
        await test_db.commit()
        await test_db.refresh(payment)
        return payment
    return _make


@pytest.fixture
def reload(test_session_factory):
    """Read a scheduled payment through a fresh session (no stale identity map)."""
    async def _reload(payment_id) -> ScheduledPayment | None:
        async with test_session_factory() as session:
            return await session.get(ScheduledPayment, payment_id)
    return _reload
