"""Pytest configuration and fixtures."""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.database import Base
from backoffice.models import Profile, Supporter, WithdrawalRequest
from backoffice.schemas.records import (
    CreatorProfile,
    SupporterPayment,
    Withdrawal,
    WithdrawalStatus,
)
from backoffice.services.errors import Conflict, StoreUnavailable, WithdrawalNotFound
from backoffice.services.payout_lifecycle import PayoutLifecycleManager
from backoffice.services.record_store import RecordStore
from backoffice.services.reporting import ReportingFacade

# Every test that needs "now" uses this instant.
REFERENCE = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_profile(creator_id="c1", created_at=None, **kwargs) -> CreatorProfile:
    fields = {
        "username": creator_id,
        "display_name": f"Creator {creator_id}",
        "created_at": created_at or utc(2026, 1, 1),
    }
    fields.update(kwargs)
    return CreatorProfile(creator_id=creator_id, **fields)


def make_payment(payment_id, amount, status="COMPLETED", creator_id="c1", created_at=None) -> SupporterPayment:
    return SupporterPayment(
        payment_id=payment_id,
        creator_id=creator_id,
        supporter_name=f"Supporter {payment_id}",
        amount=Decimal(str(amount)),
        status=status,
        created_at=created_at or utc(2026, 10, 1),
    )


def make_withdrawal(withdrawal_id, amount, status="PENDING", creator_id="c1", created_at=None) -> Withdrawal:
    created_at = created_at or utc(2026, 10, 1)
    return Withdrawal(
        withdrawal_id=withdrawal_id,
        creator_id=creator_id,
        amount=Decimal(str(amount)),
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )


class InMemoryRecordStore(RecordStore):
    """Record store over plain lists.

    Every call yields to the event loop once so concurrent requests
    interleave the way they would against a real database.
    """

    def __init__(self, profiles=(), payments=(), withdrawals=()):
        self.profiles = list(profiles)
        self.payments = list(payments)
        self.withdrawals = {w.withdrawal_id: w for w in withdrawals}
        self.writes = []
        self.fetch_calls = 0
        self.snapshot_calls = 0
        self.fail_fetch = False
        self.fail_write = False

    async def _fetch(self):
        self.fetch_calls += 1
        await asyncio.sleep(0)
        if self.fail_fetch:
            raise StoreUnavailable("store offline")

    async def fetch_creator_profiles(self):
        await self._fetch()
        return list(self.profiles)

    async def fetch_supporter_payments(self, record_filter=None):
        await self._fetch()
        return list(self.payments)

    async def fetch_withdrawals(self, record_filter=None):
        await self._fetch()
        withdrawals = list(self.withdrawals.values())
        if record_filter is not None and record_filter.record_id is not None:
            withdrawals = [w for w in withdrawals if w.withdrawal_id == record_filter.record_id]
        return withdrawals

    async def fetch_snapshot(self):
        self.snapshot_calls += 1
        return await super().fetch_snapshot()

    async def write_withdrawal_status(self, withdrawal_id, new_status, *, expected_status, updated_at):
        await asyncio.sleep(0)
        if self.fail_write:
            raise StoreUnavailable("write timed out")
        stored = self.withdrawals.get(withdrawal_id)
        if stored is None:
            raise WithdrawalNotFound(withdrawal_id)
        if stored.status is not expected_status:
            raise Conflict(withdrawal_id, expected_status.value)
        self.withdrawals[withdrawal_id] = stored.model_copy(
            update={"status": WithdrawalStatus(new_status), "updated_at": updated_at}
        )
        self.writes.append((withdrawal_id, expected_status, new_status))


@pytest.fixture
def memory_store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def make_facade():
    """Build a facade over a store with a fixed clock."""
    def _make(store, fee_rate=Decimal("0.10")):
        lifecycle = PayoutLifecycleManager(store, fee_rate=fee_rate, clock=lambda: REFERENCE)
        return ReportingFacade(store, lifecycle, clock=lambda: REFERENCE)
    return _make


@pytest.fixture
async def test_db():
    """Create test database."""
    TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def seeded_db(test_db):
    """Two creators, one supporter account, payments and withdrawals."""
    test_db.add_all([
        Profile(uuid="c1", username="amina", display_name="Amina", phone_number="+255700000001",
                created_at=datetime(2026, 6, 10)),
        Profile(uuid="c2", username="baraka", display_name="Baraka", category="music",
                created_at=datetime(2026, 10, 2)),
        Profile(uuid="s1", username="fan", display_name="Fan", user_type="supporter",
                created_at=datetime(2026, 7, 1)),
    ])
    await test_db.flush()
    test_db.add_all([
        Supporter(uuid="p1", creator_id="c1", name="Juma", amount_cents=50000,
                  status="COMPLETED", created_at=datetime(2026, 10, 5, 15)),
        Supporter(uuid="p2", creator_id="c1", name="Neema", amount_cents=30000,
                  status="PENDING", created_at=datetime(2026, 10, 6)),
        Supporter(uuid="p3", creator_id="c2", amount_cents=25050,
                  status="COMPLETED", created_at=datetime(2026, 9, 1)),
        WithdrawalRequest(uuid="w1", creator_id="c1", amount_cents=100000, status="PENDING",
                          created_at=datetime(2026, 10, 10), updated_at=datetime(2026, 10, 10)),
        WithdrawalRequest(uuid="w2", creator_id="c1", amount_cents=200000, status="COMPLETED",
                          created_at=datetime(2026, 9, 20), updated_at=datetime(2026, 9, 21)),
    ])
    await test_db.commit()
    return test_db
