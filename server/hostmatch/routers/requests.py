"""Reservation request router: intake, lookup, search and archive."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentActor
from ..core.exceptions import NotFoundError
from ..schemas.common import PROBLEM_RESPONSES, Actor
from ..schemas.request import (
    ArchiveReservationRequest,
    CreateReservationRequest,
    GetReservationRequest,
    ReservationRequestOut,
    SearchReservationRequests,
    SearchReservationRequestsResponse,
)
from ..services.claim_service import ClaimService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/requests", tags=["requests"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/create", response_model=ReservationRequestOut, status_code=201)
async def create_request(
    request: CreateReservationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> ReservationRequestOut:
    """Record new guest demand as an OPEN reservation request."""
    reservation = await ClaimService(db).create_request(request)
    return ReservationRequestOut.model_validate(reservation)


@router.post("/get", response_model=ReservationRequestOut)
async def get_request(
    request: GetReservationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> ReservationRequestOut:
    """
    Get a reservation request by id.

    A claim that lapsed since the last access is expired first, so the
    returned status is current.
    """
    service = ClaimService(db)
    if await service.expire_lapsed_claims(request.request_id):
        await db.commit()

    reservation = await service.get_request_by_id(request.request_id)
    if not reservation:
        raise NotFoundError(resource_type="reservation_request", resource_id=str(request.request_id))
    return ReservationRequestOut.model_validate(reservation)


@router.post("/search", response_model=SearchReservationRequestsResponse)
async def search_requests(
    request: SearchReservationRequests,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> SearchReservationRequestsResponse:
    """Search reservation requests with cursor-based pagination."""
    items, next_cursor = await ClaimService(db).search_requests(request)

    logger.debug(
        "Reservation requests searched",
        extra={
            "status": request.status,
            "pickup_city": request.pickup_city,
            "result_count": len(items),
            "has_next": next_cursor is not None,
        }
    )

    return SearchReservationRequestsResponse(
        items=[ReservationRequestOut.model_validate(item) for item in items],
        next_cursor=next_cursor,
    )


@router.post("/archive", response_model=ReservationRequestOut)
async def archive_request(
    request: ArchiveReservationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> ReservationRequestOut:
    """Soft-delete a reservation request that no host is holding."""
    reservation = await ClaimService(db).archive_request(request.request_id, request.admin_notes)
    return ReservationRequestOut.model_validate(reservation)
