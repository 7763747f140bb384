"""Tests for the withdrawal state machine and settlement amounts."""
import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice.schemas.records import WithdrawalStatus
from backoffice.services.errors import Conflict, IllegalTransition, InvalidStatus, UpdateFailed
from backoffice.services.payout_lifecycle import (
    ALLOWED_TRANSITIONS,
    PayoutLifecycleManager,
    WithdrawalLocks,
    is_terminal,
    parse_withdrawal_status,
)

from conftest import REFERENCE, InMemoryRecordStore, make_withdrawal


def manager_for(store, fee_rate="0.10", clock=lambda: REFERENCE):
    return PayoutLifecycleManager(store, fee_rate=Decimal(fee_rate), clock=clock)


def test_net_amount_with_default_fee():
    manager = manager_for(InMemoryRecordStore())
    withdrawal = make_withdrawal("w1", 1000)

    assert manager.compute_net_amount(withdrawal) == Decimal("900")
    assert manager.compute_fee(withdrawal) == Decimal("100")


def test_net_amount_rounds_to_cents_and_fee_makes_up_the_difference():
    manager = manager_for(InMemoryRecordStore())
    withdrawal = make_withdrawal("w1", "0.15")

    net = manager.compute_net_amount(withdrawal)
    fee = manager.compute_fee(withdrawal)

    # 0.15 * 0.9 = 0.135, rounded half-up
    assert net == Decimal("0.14")
    assert fee == Decimal("0.01")
    assert net + fee == Decimal("0.15")


@pytest.mark.parametrize("fee_rate", ["0", "0.025", "0.10", "0.333", "1"])
@pytest.mark.parametrize("amount", ["0", "0.01", "19.99", "1000", "123456.78"])
def test_net_amount_never_exceeds_gross(fee_rate, amount):
    manager = manager_for(InMemoryRecordStore(), fee_rate=fee_rate)
    withdrawal = make_withdrawal("w1", amount)

    net = manager.compute_net_amount(withdrawal)

    assert Decimal(0) <= net <= Decimal(amount)


@pytest.mark.parametrize("status", ["PENDING", "PROCESSING", "COMPLETED", "FAILED"])
def test_net_amount_is_available_for_every_status(status):
    manager = manager_for(InMemoryRecordStore())

    assert manager.compute_net_amount(make_withdrawal("w1", 2000, status)) == Decimal("1800")


@pytest.mark.parametrize("fee_rate", ["-0.01", "1.5"])
def test_fee_rate_must_be_a_fraction(fee_rate):
    with pytest.raises(ValueError):
        manager_for(InMemoryRecordStore(), fee_rate=fee_rate)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("pending", WithdrawalStatus.PENDING),
        (" Processing ", WithdrawalStatus.PROCESSING),
        ("COMPLETED", WithdrawalStatus.COMPLETED),
        ("failed", WithdrawalStatus.FAILED),
    ],
)
def test_parse_status_is_case_insensitive(token, expected):
    assert parse_withdrawal_status(token) is expected


@pytest.mark.parametrize("token", ["DONE", "", "cancelled", None, 3])
def test_parse_status_rejects_unknown_tokens(token):
    with pytest.raises(InvalidStatus):
        parse_withdrawal_status(token)


def test_only_completed_and_failed_are_terminal():
    assert is_terminal(WithdrawalStatus.COMPLETED)
    assert is_terminal(WithdrawalStatus.FAILED)
    assert not is_terminal(WithdrawalStatus.PENDING)
    assert not is_terminal(WithdrawalStatus.PROCESSING)
    assert WithdrawalStatus.PENDING not in ALLOWED_TRANSITIONS[WithdrawalStatus.PROCESSING]


@pytest.mark.asyncio
async def test_pending_to_completed_succeeds_and_persists():
    withdrawal = make_withdrawal("w1", 1000, "PENDING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])

    updated = await manager_for(store).request_transition(withdrawal, "completed")

    assert updated.status is WithdrawalStatus.COMPLETED
    assert updated.updated_at == REFERENCE
    assert updated.amount == withdrawal.amount
    assert store.writes == [("w1", WithdrawalStatus.PENDING, WithdrawalStatus.COMPLETED)]
    assert store.withdrawals["w1"].status is WithdrawalStatus.COMPLETED


@pytest.mark.asyncio
async def test_processing_then_failed():
    withdrawal = make_withdrawal("w1", 1000, "PENDING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])
    manager = manager_for(store)

    processing = await manager.request_transition(withdrawal, "PROCESSING")
    failed = await manager.request_transition(processing, "FAILED")

    assert failed.status is WithdrawalStatus.FAILED
    assert len(store.writes) == 2


@pytest.mark.asyncio
async def test_completed_to_pending_is_illegal_and_not_written():
    withdrawal = make_withdrawal("w1", 1000, "COMPLETED")
    store = InMemoryRecordStore(withdrawals=[withdrawal])

    with pytest.raises(IllegalTransition) as exc_info:
        await manager_for(store).request_transition(withdrawal, "PENDING")

    assert exc_info.value.current == "COMPLETED"
    assert exc_info.value.requested == "PENDING"
    assert store.writes == []


@pytest.mark.asyncio
async def test_processing_cannot_go_back_to_pending():
    withdrawal = make_withdrawal("w1", 1000, "PROCESSING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])

    with pytest.raises(IllegalTransition):
        await manager_for(store).request_transition(withdrawal, "pending")
    assert store.writes == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["PENDING", "PROCESSING", "COMPLETED", "FAILED"])
async def test_self_transition_is_a_no_op(status):
    withdrawal = make_withdrawal("w1", 1000, status)
    store = InMemoryRecordStore(withdrawals=[withdrawal])

    result = await manager_for(store).request_transition(withdrawal, status.lower())

    assert result == withdrawal
    assert store.writes == []


@pytest.mark.asyncio
async def test_invalid_status_never_writes():
    withdrawal = make_withdrawal("w1", 1000, "PENDING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])

    with pytest.raises(InvalidStatus):
        await manager_for(store).request_transition(withdrawal, "paid")
    assert store.writes == []


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_update_failed():
    withdrawal = make_withdrawal("w1", 1000, "PENDING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])
    store.fail_write = True

    with pytest.raises(UpdateFailed):
        await manager_for(store).request_transition(withdrawal, "PROCESSING")


@pytest.mark.asyncio
async def test_stale_snapshot_raises_conflict():
    withdrawal = make_withdrawal("w1", 1000, "PENDING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])
    manager = manager_for(store)

    await manager.request_transition(withdrawal, "PROCESSING")

    # Same (now stale) PENDING snapshot again
    with pytest.raises(Conflict):
        await manager.request_transition(withdrawal, "FAILED")
    assert store.withdrawals["w1"].status is WithdrawalStatus.PROCESSING


@pytest.mark.asyncio
async def test_updated_at_never_precedes_created_at():
    created = REFERENCE + timedelta(minutes=5)
    withdrawal = make_withdrawal("w1", 1000, "PENDING", created_at=created)
    store = InMemoryRecordStore(withdrawals=[withdrawal])

    updated = await manager_for(store, clock=lambda: REFERENCE).request_transition(withdrawal, "FAILED")

    assert updated.updated_at == created


@pytest.mark.asyncio
async def test_concurrent_transitions_yield_one_success_and_one_conflict():
    withdrawal = make_withdrawal("w1", 1000, "PENDING")
    store = InMemoryRecordStore(withdrawals=[withdrawal])
    locks = WithdrawalLocks()
    first = PayoutLifecycleManager(store, locks=locks, clock=lambda: REFERENCE)
    second = PayoutLifecycleManager(store, locks=locks, clock=lambda: REFERENCE)

    results = await asyncio.gather(
        first.request_transition(withdrawal, "PROCESSING"),
        second.request_transition(withdrawal, "FAILED"),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, Conflict)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert len(store.writes) == 1
    assert len(locks) == 0
