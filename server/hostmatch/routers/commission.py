"""Commission router: rate quotes, host approval and audited rate changes."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentActor
from ..schemas.commission import (
    ApplyCommissionRequest,
    ApproveHostRequest,
    CommissionAuditEntryOut,
    CommissionQuote,
    HostCommissionOut,
    ListCommissionAuditRequest,
    QuoteCommissionRequest,
)
from ..schemas.common import PROBLEM_RESPONSES, Actor
from ..services.commission_service import CommissionService, resolve_commission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/commission", tags=["commission"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/quote", response_model=CommissionQuote)
async def quote_commission(
    request: QuoteCommissionRequest,
    actor: Actor = CurrentActor,
) -> CommissionQuote:
    """Preview the rate and payout share a path/tier choice produces."""
    resolution = resolve_commission(request.path, request.tier)
    return CommissionQuote(
        path=request.path,
        tier=request.tier,
        rate=resolution.rate,
        payout_percentage=resolution.payout_percentage,
    )


@router.post("/approve", response_model=HostCommissionOut)
async def approve_host(
    request: ApproveHostRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> HostCommissionOut:
    """Approve a host, applying the fleet-size default rate when no path was chosen."""
    host = await CommissionService(db).approve_host(request.host_id, request.fleet_size, actor.label)
    return HostCommissionOut.model_validate(host)


@router.post("/apply", response_model=CommissionAuditEntryOut)
async def apply_commission(
    request: ApplyCommissionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> CommissionAuditEntryOut:
    """Set a host's rate from a path/tier choice and return the audit record."""
    _, entry = await CommissionService(db).apply_commission(
        request.host_id,
        request.path,
        request.tier,
        actor.label,
        reason=request.reason,
    )
    return CommissionAuditEntryOut.model_validate(entry)


@router.post("/audit", response_model=list[CommissionAuditEntryOut])
async def list_commission_audit(
    request: ListCommissionAuditRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> list[CommissionAuditEntryOut]:
    """Commission history of a host, oldest first."""
    entries = await CommissionService(db).list_audit_entries(request.host_id)
    return [CommissionAuditEntryOut.model_validate(entry) for entry in entries]
