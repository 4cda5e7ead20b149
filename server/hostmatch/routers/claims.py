"""Claim router: exclusive host claims and car assignment."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentHostId
from ..core.exceptions import NotFoundError
from ..schemas.claim import (
    AssignCarRequest,
    ClaimRequestRequest,
    GetActiveClaimRequest,
    GetClaimRequest,
    ReleaseClaimRequest,
    RequestClaimOut,
)
from ..schemas.common import PROBLEM_RESPONSES
from ..services.assignment_service import AssignmentService
from ..services.claim_service import ClaimService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/claims", tags=["claims"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/claim", response_model=RequestClaimOut, status_code=201)
async def claim_request(
    request: ClaimRequestRequest,
    db: AsyncSession = DB_DEPENDENCY,
    host_id: UUID = CurrentHostId,
) -> RequestClaimOut:
    """
    Claim an OPEN reservation request for the calling host.

    Exactly one concurrent claimant wins; the others get a retryable 409.
    """
    claim = await ClaimService(db).claim(request.request_id, host_id)
    return RequestClaimOut.model_validate(claim)


@router.post("/release", response_model=RequestClaimOut)
async def release_claim(
    request: ReleaseClaimRequest,
    db: AsyncSession = DB_DEPENDENCY,
    host_id: UUID = CurrentHostId,
) -> RequestClaimOut:
    """Give a claim back and reopen the request."""
    claim = await ClaimService(db).release(request.claim_id, host_id)
    return RequestClaimOut.model_validate(claim)


@router.post("/get", response_model=RequestClaimOut)
async def get_claim(
    request: GetClaimRequest,
    db: AsyncSession = DB_DEPENDENCY,
    host_id: UUID = CurrentHostId,
) -> RequestClaimOut:
    """Get a claim by id."""
    claim = await ClaimService(db).get_claim(request.claim_id)
    return RequestClaimOut.model_validate(claim)


@router.post("/active", response_model=RequestClaimOut)
async def get_active_claim(
    request: GetActiveClaimRequest,
    db: AsyncSession = DB_DEPENDENCY,
    host_id: UUID = CurrentHostId,
) -> RequestClaimOut:
    """Get the claim currently holding a request."""
    claim = await ClaimService(db).get_active_claim(request.request_id)
    if claim is None:
        raise NotFoundError(
            resource_type="claim",
            detail=f"Reservation request {request.request_id} has no active claim",
        )
    return RequestClaimOut.model_validate(claim)


@router.post("/assign", response_model=RequestClaimOut)
async def assign_car(
    request: AssignCarRequest,
    db: AsyncSession = DB_DEPENDENCY,
    host_id: UUID = CurrentHostId,
) -> RequestClaimOut:
    """Attach one of the caller's vehicles to their pending claim."""
    claim = await AssignmentService(db).assign_car(
        request.request_id,
        host_id,
        request.car_id,
        offered_rate=request.offered_rate,
    )
    return RequestClaimOut.model_validate(claim)
