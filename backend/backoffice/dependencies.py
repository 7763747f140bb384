"""FastAPI dependencies wiring the record store and engine into request handlers."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.database import get_db
from backoffice.services.payout_lifecycle import PayoutLifecycleManager
from backoffice.services.record_store import RecordStore, SqlRecordStore
from backoffice.services.reporting import ReportingFacade


def get_record_store(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> RecordStore:
    """Per-request SQL record store.

    Snapshot reads use REPEATABLE READ on PostgreSQL so one response never
    mixes data from two points in time.
    """
    engine = request.app.state.engine
    isolation = "REPEATABLE READ" if engine.dialect.name == "postgresql" else None
    return SqlRecordStore(
        db,
        timeout_seconds=settings.STORE_TIMEOUT_SECONDS,
        snapshot_isolation=isolation,
    )


def get_reporting_facade(
    request: Request,
    store: RecordStore = Depends(get_record_store)
) -> ReportingFacade:
    """Reporting facade sharing the process-wide withdrawal lock registry."""
    lifecycle = PayoutLifecycleManager(
        store,
        fee_rate=settings.PLATFORM_FEE_RATE,
        locks=request.app.state.withdrawal_locks,
    )
    return ReportingFacade(store, lifecycle, chart_months=settings.CHART_HISTORY_MONTHS)
