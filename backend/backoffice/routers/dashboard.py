"""Dashboard statistics router."""
from fastapi import APIRouter, Depends, Query

from backoffice.dependencies import get_reporting_facade
from backoffice.schemas.reports import DashboardStatsResponse
from backoffice.services.reporting import ReportingFacade

router = APIRouter()


@router.get("/api/dashboard/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    time_range: str = Query("allTime", alias="range"),
    facade: ReportingFacade = Depends(get_reporting_facade)
):
    """
    Get headline statistics for the operations dashboard.

    - range: today, last7days, last30days or allTime (day, 7d, 30d, all also accepted)
    - Charts are sparse: periods without records are omitted
    """
    return await facade.get_dashboard_stats(time_range)
