"""Creator and supporter roster router."""
from typing import List

from fastapi import APIRouter, Depends

from backoffice.dependencies import get_reporting_facade
from backoffice.schemas.reports import CreatorRosterEntry, SupporterView
from backoffice.services.reporting import ReportingFacade

router = APIRouter()


@router.get("/api/creators", response_model=List[CreatorRosterEntry])
async def list_creators(
    facade: ReportingFacade = Depends(get_reporting_facade)
):
    """List all creators with lifetime earnings and supporter counts (newest first)."""
    return await facade.get_creator_roster()


@router.get("/api/supporters", response_model=List[SupporterView])
async def list_supporters(
    facade: ReportingFacade = Depends(get_reporting_facade)
):
    """List all supporter payments with the receiving creator's name (newest first)."""
    return await facade.get_supporter_roster()
