"""Schemas for the dashboard, roster and withdrawal endpoints."""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer

from backoffice.schemas.records import PaymentStatus, WithdrawalStatus
from backoffice.services.money import Money

# Growth percentages render with one decimal place, e.g. "12.5".
Percentage = Annotated[Decimal, PlainSerializer(lambda v: f"{v:.1f}", return_type=str, when_used="json")]


class ChartSeries(BaseModel):
    """Sparse time series: one label per non-empty period."""

    labels: List[str] = Field(default_factory=list)
    data: List[Money] = Field(default_factory=list)


class CountSeries(BaseModel):
    labels: List[str] = Field(default_factory=list)
    data: List[int] = Field(default_factory=list)


class DashboardGrowth(BaseModel):
    revenue: Percentage


class DashboardCharts(BaseModel):
    revenue: ChartSeries
    creators: CountSeries


class DashboardStatsResponse(BaseModel):
    """Headline statistics for one dashboard range."""

    range: str
    generated_at: datetime
    total_creators: int
    active_creators: int
    total_revenue: Money
    total_paid_out: Money
    pending_payouts: Money
    total_supporters: int
    growth: DashboardGrowth
    charts: DashboardCharts


class CreatorRosterEntry(BaseModel):
    """A creator profile with lifetime earnings."""

    creator_id: str
    username: str
    display_name: str
    email: Optional[str] = None
    email_verified: bool
    phone_number: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime
    total_earnings: Money
    total_supporters: int


class SupporterView(BaseModel):
    payment_id: str
    creator_id: str
    creator_name: Optional[str] = None
    supporter_name: Optional[str] = None
    supporter_phone: Optional[str] = None
    amount: Money
    status: PaymentStatus
    created_at: datetime


class WithdrawalView(BaseModel):
    """A withdrawal with creator details and projected settlement amounts."""

    withdrawal_id: str
    creator_id: str
    creator_name: Optional[str] = None
    phone_number: Optional[str] = None
    amount: Money
    net_amount: Money
    fee_amount: Money
    status: WithdrawalStatus
    created_at: datetime
    updated_at: datetime


class WithdrawalSummary(BaseModel):
    total_withdrawn: Money
    pending_withdrawals: Money
    total_fees: Money


class WithdrawalRosterResponse(BaseModel):
    withdrawals: List[WithdrawalView]
    summary: WithdrawalSummary


class WithdrawalStatusUpdate(BaseModel):
    """Request body for a status change. Validated case-insensitively by the engine."""

    status: str = Field(..., description="PENDING, PROCESSING, COMPLETED or FAILED")


class WithdrawalStatusResponse(BaseModel):
    message: str
    withdrawal: WithdrawalView
