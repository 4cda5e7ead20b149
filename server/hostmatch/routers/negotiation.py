"""Management invitation router: bounded counter-offer negotiation."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentActor, CurrentNotifier
from ..schemas.common import PROBLEM_RESPONSES, Actor
from ..schemas.invitation import (
    CounterOfferRequest,
    DeclineInvitationRequest,
    InvitationOut,
    InvitationTokenRequest,
    NegotiationSummary,
    SendInvitationRequest,
)
from ..services.negotiation_service import NegotiationService
from ..services.notifications import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/invitations", tags=["invitations"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/send", response_model=InvitationOut, status_code=201)
async def send_invitation(
    request: SendInvitationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
    notifier: Notifier = CurrentNotifier,
) -> InvitationOut:
    """Open a management negotiation with a proposed split."""
    invitation = await NegotiationService(db, notifier).send_invitation(actor, request)
    return InvitationOut.model_validate(invitation)


@router.post("/counter", response_model=InvitationOut)
async def counter_offer(
    request: CounterOfferRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
    notifier: Notifier = CurrentNotifier,
) -> InvitationOut:
    """Counter the offer on the table; only the party whose turn it is may counter."""
    invitation = await NegotiationService(db, notifier).counter_offer(
        request.token,
        actor,
        request.owner_percent,
        request.manager_percent,
        note=request.note,
    )
    return InvitationOut.model_validate(invitation)


@router.post("/accept", response_model=InvitationOut)
async def accept_invitation(
    request: InvitationTokenRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
    notifier: Notifier = CurrentNotifier,
) -> InvitationOut:
    """Accept the offer on the table."""
    invitation = await NegotiationService(db, notifier).accept(request.token, actor)
    return InvitationOut.model_validate(invitation)


@router.post("/decline", response_model=InvitationOut)
async def decline_invitation(
    request: DeclineInvitationRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
    notifier: Notifier = CurrentNotifier,
) -> InvitationOut:
    """End the negotiation without agreement."""
    invitation = await NegotiationService(db, notifier).decline(request.token, actor, request.reason)
    return InvitationOut.model_validate(invitation)


@router.post("/get", response_model=InvitationOut)
async def get_invitation(
    request: InvitationTokenRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> InvitationOut:
    """Get an invitation the caller is a party to."""
    invitation = await NegotiationService(db).get_invitation(request.token, actor)
    return InvitationOut.model_validate(invitation)


@router.post("/summary", response_model=NegotiationSummary)
async def negotiation_summary(
    request: InvitationTokenRequest,
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> NegotiationSummary:
    """Where the negotiation stands for the caller, with the resulting earnings split."""
    service = NegotiationService(db)
    invitation = await service.get_invitation(request.token, actor)
    return service.negotiation_summary(invitation, actor)


@router.post("/list", response_model=list[InvitationOut])
async def list_invitations(
    db: AsyncSession = DB_DEPENDENCY,
    actor: Actor = CurrentActor,
) -> list[InvitationOut]:
    """Invitations the caller sent or received."""
    invitations = await NegotiationService(db).list_invitations(actor)
    return [InvitationOut.model_validate(invitation) for invitation in invitations]
