"""Withdrawal roster and status router."""
from fastapi import APIRouter, Depends

from backoffice.dependencies import get_reporting_facade
from backoffice.schemas.reports import (
    WithdrawalRosterResponse, WithdrawalStatusResponse, WithdrawalStatusUpdate
)
from backoffice.services.reporting import ReportingFacade

router = APIRouter()


@router.get("/api/withdrawals", response_model=WithdrawalRosterResponse)
async def list_withdrawals(
    facade: ReportingFacade = Depends(get_reporting_facade)
):
    """
    List all withdrawals (newest first) with a payout summary.

    - Each withdrawal carries its projected net amount and platform fee
    - Summary totals completed and pending amounts and fees collected
    """
    return await facade.get_withdrawal_roster()


@router.put("/api/withdrawals/{withdrawal_id}/status", response_model=WithdrawalStatusResponse)
async def update_withdrawal_status(
    withdrawal_id: str,
    update: WithdrawalStatusUpdate,
    facade: ReportingFacade = Depends(get_reporting_facade)
):
    """
    Move a withdrawal to a new status.

    - 400 for an unknown status, 409 for an illegal transition or a lost race
    - Re-applying the current status succeeds without changing anything
    """
    withdrawal = await facade.set_withdrawal_status(withdrawal_id, update.status)
    return WithdrawalStatusResponse(
        message="Status updated successfully",
        withdrawal=withdrawal
    )
