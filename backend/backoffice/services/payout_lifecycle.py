"""Withdrawal state machine and settlement amounts."""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, FrozenSet, Optional

from backoffice.schemas.records import Withdrawal, WithdrawalStatus
from backoffice.services.errors import IllegalTransition, InvalidStatus, StoreUnavailable, UpdateFailed
from backoffice.services.money import round_money, to_money
from backoffice.services.record_store import RecordStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[WithdrawalStatus, FrozenSet[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset({
        WithdrawalStatus.PROCESSING,
        WithdrawalStatus.COMPLETED,
        WithdrawalStatus.FAILED,
    }),
    WithdrawalStatus.PROCESSING: frozenset({
        WithdrawalStatus.COMPLETED,
        WithdrawalStatus.FAILED,
    }),
    WithdrawalStatus.COMPLETED: frozenset(),
    WithdrawalStatus.FAILED: frozenset(),
}


def parse_withdrawal_status(token: Any) -> WithdrawalStatus:
    """Normalise a caller-supplied status token to its canonical upper-case form."""
    if isinstance(token, WithdrawalStatus):
        return token
    if not isinstance(token, str):
        raise InvalidStatus(token)
    try:
        return WithdrawalStatus(token.strip().upper())
    except ValueError:
        raise InvalidStatus(token) from None


def is_terminal(status: WithdrawalStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


class WithdrawalLocks:
    """Registry of per-withdrawal locks.

    Entries are created on demand and dropped once no task holds or waits
    on them. One registry is shared by every manager in a process.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, withdrawal_id: str):
        lock = self._locks.setdefault(withdrawal_id, asyncio.Lock())
        self._users[withdrawal_id] = self._users.get(withdrawal_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[withdrawal_id] -= 1
            if self._users[withdrawal_id] == 0:
                del self._users[withdrawal_id]
                del self._locks[withdrawal_id]

    def __len__(self) -> int:
        return len(self._locks)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PayoutLifecycleManager:
    """Validates and applies withdrawal status transitions."""

    def __init__(
        self,
        store: RecordStore,
        fee_rate: Decimal = Decimal("0.10"),
        locks: Optional[WithdrawalLocks] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the manager.

        Args:
            store: Record store used for the status write
            fee_rate: Platform fee as a fraction of the gross amount, in [0, 1]
            locks: Shared per-withdrawal lock registry; a private one if omitted
            clock: Source of the current instant
        """
        fee_rate = Decimal(str(fee_rate))
        if not Decimal(0) <= fee_rate <= Decimal(1):
            raise ValueError(f"fee_rate must be between 0 and 1, got {fee_rate}")
        self.store = store
        self.fee_rate = fee_rate
        self.locks = locks if locks is not None else WithdrawalLocks()
        self.clock = clock

    def compute_net_amount(self, withdrawal: Withdrawal) -> Decimal:
        """Amount the creator receives after the platform fee, for any status."""
        return round_money(to_money(withdrawal.amount) * (Decimal(1) - self.fee_rate))

    def compute_fee(self, withdrawal: Withdrawal) -> Decimal:
        return to_money(withdrawal.amount) - self.compute_net_amount(withdrawal)

    async def request_transition(self, withdrawal: Withdrawal, target_status: Any) -> Withdrawal:
        """Move *withdrawal* to *target_status*.

        The write is conditional on the stored status still being the one
        seen on *withdrawal*; a mismatch surfaces as ``Conflict``. Re-applying
        the current status is a successful no-op and performs no write.

        Raises:
            InvalidStatus: unknown status token
            IllegalTransition: not allowed from the current status
            Conflict: the stored status changed since *withdrawal* was read
            UpdateFailed: the store write failed; the stored status is unknown
        """
        target = parse_withdrawal_status(target_status)
        current = withdrawal.status

        if target is current:
            logger.info(f"Withdrawal {withdrawal.withdrawal_id} already {current.value}; nothing to do")
            return withdrawal

        if target not in ALLOWED_TRANSITIONS[current]:
            raise IllegalTransition(current.value, target.value)

        async with self.locks.hold(withdrawal.withdrawal_id):
            updated_at = max(self.clock(), withdrawal.created_at)
            try:
                await self.store.write_withdrawal_status(
                    withdrawal.withdrawal_id,
                    target,
                    expected_status=current,
                    updated_at=updated_at,
                )
            except StoreUnavailable as exc:
                logger.error(
                    f"Status write for withdrawal {withdrawal.withdrawal_id} "
                    f"({current.value} -> {target.value}) failed: {exc.message}"
                )
                raise UpdateFailed(
                    f"Could not confirm status update for withdrawal {withdrawal.withdrawal_id}"
                ) from exc

        logger.info(f"Withdrawal {withdrawal.withdrawal_id}: {current.value} -> {target.value}")
        return withdrawal.model_copy(update={"status": target, "updated_at": updated_at})
