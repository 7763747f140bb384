"""Reporting facade: the query set behind the operations dashboard.

Each public method reads exactly one snapshot from the record store and
captures exactly one reference instant, then derives everything it returns
from those two values. Store failures propagate unchanged so callers never
see a half-computed result.
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, List, Optional

from backoffice.schemas.records import (
    CreatorProfile,
    PaymentStatus,
    RecordFilter,
    Withdrawal,
    WithdrawalStatus,
)
from backoffice.schemas.reports import (
    ChartSeries,
    CountSeries,
    CreatorRosterEntry,
    DashboardCharts,
    DashboardGrowth,
    DashboardStatsResponse,
    SupporterView,
    WithdrawalRosterResponse,
    WithdrawalSummary,
    WithdrawalView,
)
from backoffice.services.aggregation import (
    TimeRange,
    accepted_records,
    bucket_by_period,
    compute_growth,
    compute_totals,
    filter_to_window,
    parse_time_range,
    resolve_range,
    select_window,
    sum_amounts,
)
from backoffice.services.errors import PrecisionLoss, WithdrawalNotFound
from backoffice.services.money import ZERO
from backoffice.services.payout_lifecycle import PayoutLifecycleManager, parse_withdrawal_status
from backoffice.services.record_store import RecordStore

logger = logging.getLogger(__name__)

GROWTH_PLACES = Decimal("0.1")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportingFacade:
    """Composes the aggregation engine and payout manager into caller-facing shapes."""

    def __init__(
        self,
        store: RecordStore,
        lifecycle: PayoutLifecycleManager,
        clock: Callable[[], datetime] = _utcnow,
        chart_months: int = 6,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.clock = clock
        self.chart_months = chart_months

    async def get_dashboard_stats(self, time_range: Any = TimeRange.ALL_TIME) -> DashboardStatsResponse:
        """
        Build the dashboard bundle for *time_range*.

        - Creator counts cover every known creator (profiles are a stock)
        - Revenue, payouts and supporter counts cover the range (they are flows)
        - Revenue growth compares the range with the period just before it
          (month over month for allTime)
        - Charts are sparse series over the chart window of the range
        """
        time_range = parse_time_range(time_range)
        reference = self.clock()
        snapshot = await self.store.fetch_snapshot()
        windows = resolve_range(time_range, reference, self.chart_months)

        payments = filter_to_window(snapshot.payments, time_range, reference)
        withdrawals = filter_to_window(snapshot.withdrawals, time_range, reference)
        totals = compute_totals(snapshot.profiles, payments, withdrawals)

        completed = [p for p in snapshot.payments if p.status is PaymentStatus.COMPLETED]
        revenue_growth = compute_growth(
            sum_amounts(select_window(completed, windows.growth_previous)),
            sum_amounts(select_window(completed, windows.growth_current)),
        )

        revenue_series = bucket_by_period(
            completed, windows.granularity, windows.chart.start, windows.chart.end
        )
        creator_series = bucket_by_period(
            snapshot.profiles,
            windows.granularity,
            windows.chart.start,
            windows.chart.end,
            value=lambda profile: 1,
        )

        return DashboardStatsResponse(
            range=time_range.value,
            generated_at=reference,
            total_creators=totals.total_creators,
            active_creators=totals.active_creators,
            total_revenue=totals.total_revenue,
            total_paid_out=totals.total_paid_out,
            pending_payouts=totals.pending_payouts,
            total_supporters=totals.total_supporters,
            growth=DashboardGrowth(revenue=revenue_growth.quantize(GROWTH_PLACES, rounding=ROUND_HALF_UP)),
            charts=DashboardCharts(
                revenue=ChartSeries(
                    labels=[label for label, _ in revenue_series],
                    data=[amount for _, amount in revenue_series],
                ),
                creators=CountSeries(
                    labels=[label for label, _ in creator_series],
                    data=[count for _, count in creator_series],
                ),
            ),
        )

    async def get_creator_roster(self) -> List[CreatorRosterEntry]:
        """Every creator with lifetime earnings and supporter count, newest first."""
        snapshot = await self.store.fetch_snapshot()

        completed_by_creator = defaultdict(list)
        for payment in snapshot.payments:
            if payment.status is PaymentStatus.COMPLETED:
                completed_by_creator[payment.creator_id].append(payment)

        roster = []
        for profile in sorted(snapshot.profiles, key=lambda p: p.created_at, reverse=True):
            payments = accepted_records(completed_by_creator.get(profile.creator_id, []))
            roster.append(
                CreatorRosterEntry(
                    **profile.model_dump(),
                    total_earnings=sum_amounts(payments),
                    total_supporters=len(payments),
                )
            )
        return roster

    async def get_supporter_roster(self) -> List[SupporterView]:
        """Every supporter payment with the receiving creator's name, newest first."""
        snapshot = await self.store.fetch_snapshot()
        names = {p.creator_id: p.display_name for p in snapshot.profiles}

        return [
            SupporterView(
                **payment.model_dump(),
                creator_name=names.get(payment.creator_id),
            )
            for payment in sorted(snapshot.payments, key=lambda p: p.created_at, reverse=True)
        ]

    async def get_withdrawal_roster(self) -> WithdrawalRosterResponse:
        """All withdrawals, newest first, with settlement amounts and a summary."""
        snapshot = await self.store.fetch_snapshot()
        profiles = {p.creator_id: p for p in snapshot.profiles}

        views = []
        for withdrawal in sorted(snapshot.withdrawals, key=lambda w: w.created_at, reverse=True):
            try:
                views.append(self._withdrawal_view(withdrawal, profiles.get(withdrawal.creator_id)))
            except PrecisionLoss as exc:
                logger.warning(f"Excluding withdrawal {withdrawal.withdrawal_id} from roster: {exc.message}")

        completed = [w for w in snapshot.withdrawals if w.status is WithdrawalStatus.COMPLETED]
        pending = [w for w in snapshot.withdrawals if w.status is WithdrawalStatus.PENDING]

        total_fees = ZERO
        for withdrawal in completed:
            try:
                total_fees += self.lifecycle.compute_fee(withdrawal)
            except PrecisionLoss as exc:
                logger.warning(f"Excluding withdrawal {withdrawal.withdrawal_id} from fees: {exc.message}")

        return WithdrawalRosterResponse(
            withdrawals=views,
            summary=WithdrawalSummary(
                total_withdrawn=sum_amounts(completed),
                pending_withdrawals=sum_amounts(pending),
                total_fees=total_fees,
            ),
        )

    async def set_withdrawal_status(self, withdrawal_id: str, status: Any) -> WithdrawalView:
        """Apply a status change requested by an operator.

        The token is validated before anything is read, so an unknown status
        never touches the store. The creator is looked up before the write so
        a successful transition is never reported as a read failure.
        """
        target = parse_withdrawal_status(status)

        matches = await self.store.fetch_withdrawals(RecordFilter(record_id=withdrawal_id))
        if not matches:
            raise WithdrawalNotFound(withdrawal_id)
        withdrawal = matches[0]

        profile = next(
            (p for p in await self.store.fetch_creator_profiles() if p.creator_id == withdrawal.creator_id),
            None,
        )
        updated = await self.lifecycle.request_transition(withdrawal, target)
        return self._withdrawal_view(updated, profile)

    def _withdrawal_view(
        self, withdrawal: Withdrawal, profile: Optional[CreatorProfile]
    ) -> WithdrawalView:
        return WithdrawalView(
            **withdrawal.model_dump(),
            creator_name=profile.display_name if profile else None,
            phone_number=profile.phone_number if profile else None,
            net_amount=self.lifecycle.compute_net_amount(withdrawal),
            fee_amount=self.lifecycle.compute_fee(withdrawal),
        )
