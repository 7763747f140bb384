"""Record store adapter.

``RecordStore`` is the only way the engine reaches durable data. It hands
out typed records and exposes a single mutation: a conditional withdrawal
status write. ``SqlRecordStore`` implements it on an async SQLAlchemy session.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models import Profile, Supporter, WithdrawalRequest
from backoffice.schemas.records import (
    CreatorProfile,
    RecordFilter,
    Snapshot,
    SupporterPayment,
    Withdrawal,
    WithdrawalStatus,
)
from backoffice.services.errors import Conflict, StoreUnavailable, WithdrawalNotFound
from backoffice.services.money import cents_to_money

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Read access to the three collections plus the withdrawal status write."""

    @abstractmethod
    async def fetch_creator_profiles(self) -> List[CreatorProfile]:
        ...

    @abstractmethod
    async def fetch_supporter_payments(
        self, record_filter: Optional[RecordFilter] = None
    ) -> List[SupporterPayment]:
        ...

    @abstractmethod
    async def fetch_withdrawals(
        self, record_filter: Optional[RecordFilter] = None
    ) -> List[Withdrawal]:
        ...

    @abstractmethod
    async def write_withdrawal_status(
        self,
        withdrawal_id: str,
        new_status: WithdrawalStatus,
        *,
        expected_status: WithdrawalStatus,
        updated_at: datetime,
    ) -> None:
        """Persist *new_status* only if the stored status equals *expected_status*.

        Raises:
            Conflict: stored status differs from *expected_status*
            WithdrawalNotFound: no withdrawal with that id
            StoreUnavailable: the write could not be completed
        """

    async def fetch_snapshot(self) -> Snapshot:
        """Read all three collections once."""
        profiles = await self.fetch_creator_profiles()
        payments = await self.fetch_supporter_payments()
        withdrawals = await self.fetch_withdrawals()
        return Snapshot(profiles=profiles, payments=payments, withdrawals=withdrawals)


def _to_storage(instant: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def _filtered(statement, model, record_filter: Optional[RecordFilter]):
    if record_filter is None:
        return statement
    if record_filter.record_id is not None:
        statement = statement.where(model.uuid == record_filter.record_id)
    if record_filter.creator_id is not None:
        statement = statement.where(model.creator_id == record_filter.creator_id)
    if record_filter.status is not None:
        statement = statement.where(model.status == record_filter.status.upper())
    if record_filter.created_from is not None:
        statement = statement.where(model.created_at >= _to_storage(record_filter.created_from))
    if record_filter.created_before is not None:
        statement = statement.where(model.created_at < _to_storage(record_filter.created_before))
    return statement


class SqlRecordStore(RecordStore):
    """Record store backed by an async SQLAlchemy session."""

    def __init__(
        self,
        session: AsyncSession,
        timeout_seconds: float = 10.0,
        snapshot_isolation: Optional[str] = None,
    ):
        """Initialize the store.

        Args:
            session: Database session, owned by the caller
            timeout_seconds: Bound on each statement and commit
            snapshot_isolation: Isolation level for ``fetch_snapshot`` reads
                (e.g. "REPEATABLE READ"), or None for the engine default
        """
        self.session = session
        self.timeout_seconds = timeout_seconds
        self.snapshot_isolation = snapshot_isolation

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback after store failure also failed: {e}")

    async def _bounded(self, awaitable, action: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            await self._rollback()
            raise StoreUnavailable(
                f"Record store timed out after {self.timeout_seconds}s during {action}"
            ) from e
        except (SQLAlchemyError, OSError) as e:
            await self._rollback()
            logger.error(f"Record store {action} failed: {e}")
            raise StoreUnavailable(f"Record store {action} failed") from e

    async def fetch_creator_profiles(self) -> List[CreatorProfile]:
        result = await self._bounded(
            self.session.execute(
                select(Profile)
                .where(Profile.user_type == "creator")
                .order_by(Profile.created_at)
            ),
            "profile fetch",
        )
        return [
            CreatorProfile(
                creator_id=row.uuid,
                username=row.username,
                display_name=row.display_name,
                email=row.email,
                email_verified=row.email_verified,
                phone_number=row.phone_number,
                category=row.category,
                created_at=row.created_at,
            )
            for row in result.scalars().all()
        ]

    async def fetch_supporter_payments(
        self, record_filter: Optional[RecordFilter] = None
    ) -> List[SupporterPayment]:
        statement = _filtered(select(Supporter), Supporter, record_filter)
        result = await self._bounded(
            self.session.execute(statement.order_by(Supporter.created_at)),
            "payment fetch",
        )
        return [
            SupporterPayment(
                payment_id=row.uuid,
                creator_id=row.creator_id,
                supporter_name=row.name,
                supporter_phone=row.phone,
                amount=cents_to_money(row.amount_cents),
                status=row.status,
                created_at=row.created_at,
            )
            for row in result.scalars().all()
        ]

    async def fetch_withdrawals(
        self, record_filter: Optional[RecordFilter] = None
    ) -> List[Withdrawal]:
        statement = _filtered(select(WithdrawalRequest), WithdrawalRequest, record_filter)
        result = await self._bounded(
            self.session.execute(statement.order_by(WithdrawalRequest.created_at)),
            "withdrawal fetch",
        )
        return [
            Withdrawal(
                withdrawal_id=row.uuid,
                creator_id=row.creator_id,
                amount=cents_to_money(row.amount_cents),
                status=row.status,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in result.scalars().all()
        ]

    async def fetch_snapshot(self) -> Snapshot:
        """Read the three collections inside one transaction, then end it."""
        try:
            if self.snapshot_isolation and not self.session.in_transaction():
                await self._bounded(
                    self.session.connection(
                        execution_options={"isolation_level": self.snapshot_isolation}
                    ),
                    "snapshot begin",
                )
            return await super().fetch_snapshot()
        finally:
            await self._rollback()

    async def write_withdrawal_status(
        self,
        withdrawal_id: str,
        new_status: WithdrawalStatus,
        *,
        expected_status: WithdrawalStatus,
        updated_at: datetime,
    ) -> None:
        statement = (
            update(WithdrawalRequest)
            .where(
                WithdrawalRequest.uuid == withdrawal_id,
                WithdrawalRequest.status == expected_status.value,
            )
            .values(status=new_status.value, updated_at=_to_storage(updated_at))
            .execution_options(synchronize_session=False)
        )
        result = await self._bounded(self.session.execute(statement), "status write")

        if result.rowcount == 0:
            existing = await self._bounded(
                self.session.execute(
                    select(WithdrawalRequest.uuid).where(WithdrawalRequest.uuid == withdrawal_id)
                ),
                "withdrawal lookup",
            )
            found = existing.scalar_one_or_none() is not None
            await self._rollback()
            if not found:
                raise WithdrawalNotFound(withdrawal_id)
            raise Conflict(withdrawal_id, expected_status.value)

        await self._bounded(self.session.commit(), "status commit")
