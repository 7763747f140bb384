"""Aggregation engine for dashboard statistics.

Pure functions over already-fetched records. Nothing here touches the store,
reads the clock, or keeps state between calls: the caller captures a single
reference instant and a single snapshot and passes both in.

Time series
-----------
``bucket_by_period`` emits a **sparse** series: periods without records are
omitted rather than filled with zeros. Callers that need a dense axis fill
the gaps themselves.

Range windows
-------------
``resolve_range`` maps a named range onto concrete half-open windows:

* ``today``       -- since UTC midnight of the reference instant, daily buckets
* ``last7days``   -- trailing 7 days, daily buckets
* ``last30days``  -- trailing 30 days, daily buckets
* ``allTime``     -- unbounded for totals, the N months up to the reference for charts
"""
from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel

from backoffice.schemas.records import (
    CreatorProfile,
    PaymentStatus,
    SupporterPayment,
    Withdrawal,
    WithdrawalStatus,
)
from backoffice.services.errors import InvalidTimeRange, PrecisionLoss
from backoffice.services.money import ZERO, to_money

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Smallest datetime step; turns an inclusive end into a half-open one.
INSTANT = timedelta(microseconds=1)


class Granularity(str, Enum):
    DAY = "day"
    MONTH = "month"


class TimeRange(str, Enum):
    TODAY = "today"
    LAST_7_DAYS = "last7days"
    LAST_30_DAYS = "last30days"
    ALL_TIME = "allTime"


# Tokens used by the legacy dashboard front end.
_RANGE_ALIASES = {
    "day": TimeRange.TODAY,
    "7d": TimeRange.LAST_7_DAYS,
    "30d": TimeRange.LAST_30_DAYS,
    "all": TimeRange.ALL_TIME,
}


class TimeWindow(BaseModel):
    """Half-open interval ``[start, end)``; ``None`` leaves a side unbounded."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant >= self.end:
            return False
        return True


class RangeWindows(BaseModel):
    """Every window a dashboard request needs, derived from one reference instant."""

    totals: TimeWindow
    chart: TimeWindow
    granularity: Granularity
    growth_current: TimeWindow
    growth_previous: TimeWindow


class Totals(BaseModel):
    total_creators: int = 0
    active_creators: int = 0
    total_revenue: Decimal = ZERO
    total_paid_out: Decimal = ZERO
    pending_payouts: Decimal = ZERO
    total_supporters: int = 0


# ── Calendar helpers ──────────────────────────────────────────────────────────

def utc_midnight(instant: datetime) -> datetime:
    return instant.replace(hour=0, minute=0, second=0, microsecond=0)


def shift_months(instant: datetime, months: int) -> datetime:
    """Move *instant* by whole calendar months, clamping the day of month."""
    month_index = instant.year * 12 + (instant.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


def period_start(instant: datetime, granularity: Granularity) -> datetime:
    start = utc_midnight(instant)
    if granularity is Granularity.MONTH:
        start = start.replace(day=1)
    return start


def period_label(start: datetime, granularity: Granularity) -> str:
    if granularity is Granularity.MONTH:
        return start.strftime("%Y-%m")
    return start.strftime("%Y-%m-%d")


# ── Ranges and windows ────────────────────────────────────────────────────────

def parse_time_range(token: Any) -> TimeRange:
    """Parse a range token (case-insensitive, legacy aliases accepted)."""
    if isinstance(token, TimeRange):
        return token
    if not isinstance(token, str):
        raise InvalidTimeRange(token)
    normalized = token.strip().lower()
    for candidate in TimeRange:
        if candidate.value.lower() == normalized:
            return candidate
    if normalized in _RANGE_ALIASES:
        return _RANGE_ALIASES[normalized]
    raise InvalidTimeRange(token)


def resolve_range(time_range: TimeRange, reference: datetime, chart_months: int = 6) -> RangeWindows:
    """Derive all windows for *time_range* from the single *reference* instant."""
    time_range = parse_time_range(time_range)
    midnight = utc_midnight(reference)
    next_midnight = midnight + timedelta(days=1)

    if time_range is TimeRange.ALL_TIME:
        one_month_ago = shift_months(reference, -1)
        # Closed at the reference instant; the oldest month may be partial
        return RangeWindows(
            totals=TimeWindow(),
            chart=TimeWindow(
                start=shift_months(reference, -chart_months),
                end=reference + INSTANT,
            ),
            granularity=Granularity.MONTH,
            growth_current=TimeWindow(start=one_month_ago),
            growth_previous=TimeWindow(start=shift_months(reference, -2), end=one_month_ago),
        )

    if time_range is TimeRange.TODAY:
        start = midnight
        span = timedelta(days=1)
        chart_days = 1
    else:
        days = 7 if time_range is TimeRange.LAST_7_DAYS else 30
        start = reference - timedelta(days=days)
        span = timedelta(days=days)
        chart_days = days

    return RangeWindows(
        totals=TimeWindow(start=start),
        chart=TimeWindow(start=next_midnight - timedelta(days=chart_days), end=next_midnight),
        granularity=Granularity.DAY,
        growth_current=TimeWindow(start=start),
        growth_previous=TimeWindow(start=start - span, end=start),
    )


def select_window(records: Iterable[R], window: TimeWindow) -> List[R]:
    return [record for record in records if window.contains(record.created_at)]


def filter_to_window(
    records: Iterable[R],
    time_range: TimeRange,
    reference: datetime,
) -> List[R]:
    """Keep the records whose ``created_at`` falls inside the totals window of *time_range*."""
    return select_window(records, resolve_range(time_range, reference).totals)


# ── Sums ──────────────────────────────────────────────────────────────────────

def _record_id(record: Any) -> str:
    for attr in ("payment_id", "withdrawal_id", "creator_id"):
        value = getattr(record, attr, None)
        if value:
            return value
    return "<unknown>"


def record_amount(record: Any) -> Decimal:
    """Amount of *record* at cent precision; raises ``PrecisionLoss``."""
    return to_money(record.amount)


def accepted_records(records: Iterable[R]) -> List[R]:
    """Records whose amount passes the precision check; the rest are logged and dropped."""
    accepted = []
    for record in records:
        try:
            record_amount(record)
        except PrecisionLoss as exc:
            logger.warning(f"Excluding record {_record_id(record)}: {exc.message}")
            continue
        accepted.append(record)
    return accepted


def sum_amounts(records: Iterable[Any]) -> Decimal:
    """Exact sum of record amounts; records that fail the precision check are skipped."""
    total = ZERO
    for record in records:
        try:
            total += record_amount(record)
        except PrecisionLoss as exc:
            logger.warning(f"Excluding record {_record_id(record)} from sum: {exc.message}")
    return total


def compute_totals(
    profiles: Sequence[CreatorProfile],
    payments: Sequence[SupporterPayment],
    withdrawals: Sequence[Withdrawal],
) -> Totals:
    """Compute headline totals from one snapshot.

    A creator is *active* when at least one ``COMPLETED`` supporter payment
    references their creator id. Payments for ids without a profile still
    count toward revenue but never toward active creators.
    A payment that fails the precision check counts toward nothing.
    """
    creator_ids = {profile.creator_id for profile in profiles}
    completed_payments = accepted_records(
        p for p in payments if p.status is PaymentStatus.COMPLETED
    )
    paying_creators = {p.creator_id for p in completed_payments}

    return Totals(
        total_creators=len(creator_ids),
        active_creators=len(creator_ids & paying_creators),
        total_revenue=sum_amounts(completed_payments),
        total_paid_out=sum_amounts(
            w for w in withdrawals if w.status is WithdrawalStatus.COMPLETED
        ),
        pending_payouts=sum_amounts(
            w for w in withdrawals if w.status is WithdrawalStatus.PENDING
        ),
        total_supporters=len(completed_payments),
    )


def bucket_by_period(
    records: Iterable[R],
    granularity: Granularity,
    window_start: datetime,
    window_end: datetime,
    value: Callable[[R], Any] = record_amount,
) -> List[Tuple[str, Any]]:
    """Group records in ``[window_start, window_end)`` by calendar period.

    Returns ``(period_label, aggregate)`` pairs in chronological order.
    Empty periods are omitted.
    """
    granularity = Granularity(granularity)
    buckets: dict = {}
    for record in records:
        created_at = record.created_at
        if created_at < window_start or created_at >= window_end:
            continue
        try:
            amount = value(record)
        except PrecisionLoss as exc:
            logger.warning(f"Excluding record {_record_id(record)} from series: {exc.message}")
            continue
        key = period_start(created_at, granularity)
        buckets[key] = buckets.get(key, 0) + amount

    return [(period_label(key, granularity), buckets[key]) for key in sorted(buckets)]


def compute_growth(previous: Any, current: Any) -> Decimal:
    """Percentage change from *previous* to *current*.

    Defined as exactly 0 when *previous* is 0, whatever *current* is.
    """
    previous = previous if isinstance(previous, Decimal) else Decimal(str(previous))
    current = current if isinstance(current, Decimal) else Decimal(str(current))
    if previous == 0:
        return Decimal(0)
    return (current - previous) / previous * 100
