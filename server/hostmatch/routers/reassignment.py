"""Vehicle reassignment router.

``initiate`` is an operator action and requires a bearer token. ``consume``
and ``status`` are reached from the guest's consent link, where the consent
token itself is the credential.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentActor, CurrentNotifier
from ..schemas.common import PROBLEM_RESPONSES, Actor
from ..schemas.reassignment import (
    BookingOut,
    ConsumeTokenRequest,
    InitiateReassignmentRequest,
    ReassignmentTokenOut,
    TokenStatusOut,
    TokenStatusRequest,
)
from ..services.notifications import Notifier
from ..services.reassignment_service import ReassignmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/reassignment", tags=["reassignment"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/initiate", response_model=ReassignmentTokenOut, status_code=201)
async def initiate_reassignment(
    request: InitiateReassignmentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
    notifier: Notifier = CurrentNotifier,
) -> ReassignmentTokenOut:
    """Propose a replacement vehicle and send the guest a consent link."""
    service = ReassignmentService(db, notifier)
    token = await service.initiate(request.booking_id, request.new_car_id, request.reason, actor.label)

    response = ReassignmentTokenOut.model_validate(token)
    response.consent_url = service.consent_url(token)
    return response


@router.post("/consume", response_model=BookingOut)
async def consume_token(
    request: ConsumeTokenRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> BookingOut:
    """Apply the vehicle change the guest consented to; single use."""
    booking = await ReassignmentService(db).consume(request.token)
    return BookingOut.model_validate(booking)


@router.post("/status", response_model=TokenStatusOut)
async def token_status(
    request: TokenStatusRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> TokenStatusOut:
    """Show what a consent link proposes without using it."""
    record, state = await ReassignmentService(db).get_token_status(request.token)
    return TokenStatusOut(
        booking_id=record.booking_id,
        original_car_id=record.original_car_id,
        new_car_id=record.new_car_id,
        reason=record.reason,
        state=state,
        expires_at=record.expires_at,
    )
