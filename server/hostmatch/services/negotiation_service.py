"""Negotiation service: bounded counter-offer protocol for management invitations.

An invitation moves PENDING -> COUNTER_OFFERED* -> ACCEPTED | DECLINED |
EXPIRED. Parties alternate: only the party that did not make the latest offer
may counter or accept, either party may decline, and at most
``max_negotiation_rounds`` counter-offers are allowed. Every transition is a
conditional write on (status, negotiation_rounds), so a concurrent action on
the same invitation fails with a conflict instead of being lost.
"""

import logging
import secrets
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    ExpiredError,
    NotFoundError,
    RoundsExhaustedError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.invitation import (
    OPEN_INVITATION_STATUSES,
    InvitationStatus,
    InvitationType,
    ManagementInvitation,
)
from ..schemas.common import Actor
from ..schemas.invitation import (
    EarningsSplit,
    NegotiationEntry,
    NegotiationSummary,
    Party,
    Role,
    SendInvitationRequest,
    Terms,
)
from .expiry import invitation_is_lapsed
from .notifications import Notifier, deliver, get_notifier

logger = logging.getLogger(__name__)

OWNER_PERCENT_RANGE = (50, 90)
MANAGER_PERCENT_RANGE = (10, 50)


class ActorRole(str, Enum):
    """How an actor relates to an invitation."""
    SENDER = "SENDER"
    RECIPIENT = "RECIPIENT"
    NEITHER = "NEITHER"


def _same_email(left: str | None, right: str | None) -> bool:
    return bool(left) and bool(right) and left.strip().lower() == right.strip().lower()


def resolve_actor(invitation: ManagementInvitation, actor: Actor) -> ActorRole:
    """
    Decide whether ``actor`` is the sender, the recipient or a stranger.

    Account ids are compared first; email matches (case-insensitive) cover a
    recipient who had no account when the invitation was sent.
    """
    if actor.account_id == invitation.sender_id:
        return ActorRole.SENDER
    if invitation.recipient_id and actor.account_id == invitation.recipient_id:
        return ActorRole.RECIPIENT
    if _same_email(actor.email, invitation.sender_email):
        return ActorRole.SENDER
    if _same_email(actor.email, invitation.recipient_email):
        return ActorRole.RECIPIENT
    return ActorRole.NEITHER


def role_for(invitation_type: InvitationType | str, party: Party) -> Role:
    """Map a party to its side of the management relationship."""
    owner_sends = invitation_type == InvitationType.OWNER_INVITES_MANAGER
    if party == Party.SENDER:
        return Role.OWNER if owner_sends else Role.MANAGER
    return Role.MANAGER if owner_sends else Role.OWNER


def validate_split(owner_percent: int, manager_percent: int) -> Terms:
    """
    Check an owner/manager split against the allowed bounds.

    Raises:
        ValidationError: If a share is out of range or they do not sum to 100
    """
    errors = {}
    low, high = OWNER_PERCENT_RANGE
    if not low <= owner_percent <= high:
        errors["owner_percent"] = f"must be between {low} and {high}"
    low, high = MANAGER_PERCENT_RANGE
    if not low <= manager_percent <= high:
        errors["manager_percent"] = f"must be between {low} and {high}"
    if owner_percent + manager_percent != 100:
        errors["total"] = "owner and manager percentages must sum to 100"
    if errors:
        raise ValidationError(
            detail=f"Invalid split {owner_percent}/{manager_percent}",
            errors=errors,
            code="INVALID_SPLIT",
        )
    return Terms(owner_percent=owner_percent, manager_percent=manager_percent)


def history_of(invitation: ManagementInvitation) -> list[NegotiationEntry]:
    return [NegotiationEntry.model_validate(entry) for entry in invitation.negotiation_history or []]


def get_current_terms(invitation: ManagementInvitation) -> Terms:
    """Latest counter-offer if there is one, otherwise the original proposal."""
    if invitation.counter_owner_percent is not None and invitation.counter_manager_percent is not None:
        return Terms(
            owner_percent=invitation.counter_owner_percent,
            manager_percent=invitation.counter_manager_percent,
        )
    return Terms(
        owner_percent=invitation.proposed_owner_percent,
        manager_percent=invitation.proposed_manager_percent,
    )


def last_offer_party(invitation: ManagementInvitation) -> Party:
    """Party that made the offer currently on the table."""
    history = invitation.negotiation_history or []
    if not history:
        return Party.SENDER
    return Party(history[-1]["party"])


def earnings_split(terms: Terms, platform_fee: float) -> EarningsSplit:
    """Shares of gross revenue once the platform fee is taken off the top."""
    remaining = 1 - platform_fee
    return EarningsSplit(
        platform_percent=round(platform_fee * 100, 2),
        owner_percent=round(terms.owner_percent * remaining, 2),
        manager_percent=round(terms.manager_percent * remaining, 2),
    )


class NegotiationService:
    """Service for management invitation negotiation."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or get_notifier()
        self.max_rounds = settings.max_negotiation_rounds

    async def send_invitation(self, actor: Actor, request: SendInvitationRequest) -> ManagementInvitation:
        """
        Open a negotiation with the proposed split as round 0.

        Raises:
            ValidationError: If the split is invalid, the sender has no email,
                or the sender invites themselves
        """
        terms = validate_split(request.owner_percent, request.manager_percent)

        if not actor.email:
            raise ValidationError(
                detail="The sending account has no email address",
                code="SENDER_EMAIL_REQUIRED",
            )
        if _same_email(actor.email, request.recipient_email) or request.recipient_id == actor.account_id:
            raise ValidationError(
                detail="An invitation cannot be sent to yourself",
                errors={"recipient_email": request.recipient_email},
                code="SELF_INVITATION",
            )

        now = utcnow()
        proposal = NegotiationEntry(
            round=0,
            party=Party.SENDER,
            role=role_for(request.invitation_type, Party.SENDER),
            actor=actor.account_id,
            owner_percent=terms.owner_percent,
            manager_percent=terms.manager_percent,
            timestamp=now,
            note=request.message,
        )

        invitation = ManagementInvitation(
            token=secrets.token_urlsafe(32),
            invitation_type=request.invitation_type,
            sender_id=actor.account_id,
            sender_email=actor.email,
            recipient_id=request.recipient_id,
            recipient_email=request.recipient_email,
            vehicle_ids=[str(vehicle_id) for vehicle_id in request.vehicle_ids],
            proposed_owner_percent=terms.owner_percent,
            proposed_manager_percent=terms.manager_percent,
            negotiation_rounds=0,
            negotiation_history=[proposal.model_dump(mode="json")],
            status=InvitationStatus.PENDING,
            message=request.message,
            expires_at=now + timedelta(days=settings.invitation_ttl_days),
            **request.permissions.model_dump(),
        )
        self.db.add(invitation)
        await self.db.commit()
        await self.db.refresh(invitation)

        metrics_collector.record_negotiation_action("send")
        logger.info(
            "Management invitation created",
            extra={
                "invitation_id": str(invitation.id),
                "invitation_type": request.invitation_type,
                "sender_id": actor.account_id,
                "recipient_email": request.recipient_email,
                "owner_percent": terms.owner_percent,
                "manager_percent": terms.manager_percent,
                "vehicle_count": len(request.vehicle_ids),
            }
        )

        await deliver(
            "invitation_sent",
            lambda: self.notifier.invitation_sent(invitation),
            invitation_id=str(invitation.id),
        )
        return invitation

    async def counter_offer(
        self,
        token: str,
        actor: Actor,
        owner_percent: int,
        manager_percent: int,
        note: str | None = None,
    ) -> ManagementInvitation:
        """
        Put a new split on the table.

        Raises:
            AuthorizationError: If the actor is not a party or it is not their turn
            ExpiredError: If the invitation lapsed
            ConflictError: If the invitation is closed or changed concurrently
            RoundsExhaustedError: If every counter-offer round is used
            ValidationError: If the split is invalid
        """
        invitation, party = await self._load_for_action(token, actor)
        self._require_turn(invitation, party, "counter-offer")

        if invitation.negotiation_rounds >= self.max_rounds:
            logger.warning(
                "Counter-offer refused - rounds exhausted",
                extra={"invitation_id": str(invitation.id), "rounds": invitation.negotiation_rounds}
            )
            raise RoundsExhaustedError(str(invitation.id), self.max_rounds)

        terms = validate_split(owner_percent, manager_percent)

        now = utcnow()
        new_round = invitation.negotiation_rounds + 1
        entry = NegotiationEntry(
            round=new_round,
            party=party,
            role=role_for(invitation.invitation_type, party),
            actor=actor.account_id,
            owner_percent=terms.owner_percent,
            manager_percent=terms.manager_percent,
            timestamp=now,
            note=note,
        )
        history = list(invitation.negotiation_history or []) + [entry.model_dump(mode="json")]

        await self._transition(
            invitation,
            now,
            status=InvitationStatus.COUNTER_OFFERED,
            counter_owner_percent=terms.owner_percent,
            counter_manager_percent=terms.manager_percent,
            negotiation_rounds=new_round,
            negotiation_history=history,
            **self._bind_recipient(invitation, actor, party),
        )
        invitation = await self.get_invitation_by_token_or_raise(token)

        metrics_collector.record_negotiation_action("counter")
        logger.info(
            "Counter-offer recorded",
            extra={
                "invitation_id": str(invitation.id),
                "party": party,
                "round": new_round,
                "owner_percent": terms.owner_percent,
                "manager_percent": terms.manager_percent,
            }
        )

        recipient = invitation.recipient_email if party == Party.SENDER else invitation.sender_email
        await deliver(
            "invitation_countered",
            lambda: self.notifier.invitation_countered(invitation, recipient),
            invitation_id=str(invitation.id),
        )
        return invitation

    async def accept(self, token: str, actor: Actor) -> ManagementInvitation:
        """
        Accept the offer on the table; allowed even after the last round.

        Raises:
            AuthorizationError: If the actor is not a party or made the latest offer
            ExpiredError: If the invitation lapsed
            ConflictError: If the invitation is closed or changed concurrently
        """
        invitation, party = await self._load_for_action(token, actor)
        self._require_turn(invitation, party, "accept")

        now = utcnow()
        await self._transition(
            invitation,
            now,
            status=InvitationStatus.ACCEPTED,
            responded_at=now,
            **self._bind_recipient(invitation, actor, party),
        )
        invitation = await self.get_invitation_by_token_or_raise(token)
        terms = get_current_terms(invitation)

        metrics_collector.record_negotiation_action("accept")
        logger.info(
            "Management invitation accepted",
            extra={
                "invitation_id": str(invitation.id),
                "party": party,
                "rounds": invitation.negotiation_rounds,
                "owner_percent": terms.owner_percent,
                "manager_percent": terms.manager_percent,
            }
        )

        await deliver(
            "invitation_responded",
            lambda: self.notifier.invitation_responded(invitation),
            invitation_id=str(invitation.id),
        )
        return invitation

    async def decline(self, token: str, actor: Actor, reason: str | None = None) -> ManagementInvitation:
        """
        End the negotiation without agreement; either party may decline.

        Raises:
            AuthorizationError: If the actor is not a party
            ExpiredError: If the invitation lapsed
            ConflictError: If the invitation is closed or changed concurrently
        """
        invitation, party = await self._load_for_action(token, actor)

        decline_reason = invitation.decline_reason
        if reason:
            decline_reason = f"{decline_reason}\n{reason}" if decline_reason else reason

        now = utcnow()
        await self._transition(
            invitation,
            now,
            status=InvitationStatus.DECLINED,
            responded_at=now,
            decline_reason=decline_reason,
            **self._bind_recipient(invitation, actor, party),
        )
        invitation = await self.get_invitation_by_token_or_raise(token)

        metrics_collector.record_negotiation_action("decline")
        logger.info(
            "Management invitation declined",
            extra={
                "invitation_id": str(invitation.id),
                "party": party,
                "rounds": invitation.negotiation_rounds,
            }
        )

        await deliver(
            "invitation_responded",
            lambda: self.notifier.invitation_responded(invitation),
            invitation_id=str(invitation.id),
        )
        return invitation

    async def get_invitation(self, token: str, actor: Actor | None = None) -> ManagementInvitation:
        """
        Get an invitation, expiring it first if it lapsed.

        Raises:
            NotFoundError: If the token is unknown
            AuthorizationError: If ``actor`` is given and is not a party
        """
        invitation = await self.get_invitation_by_token_or_raise(token)
        if actor is not None and resolve_actor(invitation, actor) == ActorRole.NEITHER:
            raise AuthorizationError(detail="Only the invitation's parties may view it")

        if await self._expire_if_lapsed(invitation):
            invitation = await self.get_invitation_by_token_or_raise(token)
        return invitation

    async def list_invitations(self, actor: Actor) -> list[ManagementInvitation]:
        """Invitations the actor sent or received, newest first."""
        conditions = [
            ManagementInvitation.sender_id == actor.account_id,
            ManagementInvitation.recipient_id == actor.account_id,
        ]
        if actor.email:
            email = actor.email.lower()
            conditions.append(func.lower(ManagementInvitation.sender_email) == email)
            conditions.append(func.lower(ManagementInvitation.recipient_email) == email)

        stmt = (
            select(ManagementInvitation)
            .where(or_(*conditions))
            .order_by(ManagementInvitation.created_at.desc())
        )
        result = await self.db.execute(stmt)
        invitations = list(result.scalars())

        refreshed = []
        for invitation in invitations:
            if await self._expire_if_lapsed(invitation):
                invitation = await self.get_invitation_by_token_or_raise(invitation.token)
            refreshed.append(invitation)
        return refreshed

    def negotiation_summary(self, invitation: ManagementInvitation, actor: Actor) -> NegotiationSummary:
        """
        Summarize the negotiation from the actor's point of view.

        Raises:
            AuthorizationError: If the actor is not a party
        """
        role = resolve_actor(invitation, actor)
        if role == ActorRole.NEITHER:
            raise AuthorizationError(detail="Only the invitation's parties may view it")

        party = Party(role.value)
        last = last_offer_party(invitation)
        terms = get_current_terms(invitation)
        is_open = invitation.status in OPEN_INVITATION_STATUSES and not invitation_is_lapsed(invitation)
        can_respond = is_open and party != last
        rounds_remaining = max(0, self.max_rounds - invitation.negotiation_rounds)

        return NegotiationSummary(
            status=invitation.status,
            party=party,
            current_terms=terms,
            last_offer_by=last,
            rounds_used=invitation.negotiation_rounds,
            rounds_remaining=rounds_remaining,
            can_respond=can_respond,
            can_counter_offer=can_respond and rounds_remaining > 0,
            earnings=earnings_split(terms, settings.management_platform_fee),
            expires_at=invitation.expires_at,
        )

    async def expire_invitations(self, batch_size: int = 100) -> int:
        """
        Expire open invitations past their deadline.

        Returns:
            Number of invitations expired
        """
        now = utcnow()
        stmt = (
            select(ManagementInvitation.id)
            .where(
                ManagementInvitation.status.in_(OPEN_INVITATION_STATUSES),
                ManagementInvitation.expires_at < now,
            )
            .order_by(ManagementInvitation.expires_at)
            .limit(batch_size)
        )
        invitation_ids = list((await self.db.execute(stmt)).scalars())

        expired_count = 0
        for invitation_id in invitation_ids:
            result = await self.db.execute(self._expire_statement(invitation_id, now))
            expired_count += result.rowcount

        if expired_count > 0:
            await self.db.commit()
            metrics_collector.record_negotiation_action("expire", expired_count)
            logger.info(
                "Invitation expiration batch completed",
                extra={"expired_count": expired_count, "batch_size": batch_size}
            )
        return expired_count

    async def get_invitation_by_token_or_raise(self, token: str) -> ManagementInvitation:
        stmt = (
            select(ManagementInvitation)
            .where(ManagementInvitation.token == token)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        invitation = result.scalar_one_or_none()
        if not invitation:
            raise NotFoundError(resource_type="invitation")
        return invitation

    async def _load_for_action(self, token: str, actor: Actor) -> tuple[ManagementInvitation, Party]:
        """Load an invitation for a state change and check it is still negotiable."""
        invitation = await self.get_invitation_by_token_or_raise(token)

        role = resolve_actor(invitation, actor)
        if role == ActorRole.NEITHER:
            logger.warning(
                "Invitation action refused - actor is not a party",
                extra={"invitation_id": str(invitation.id), "account_id": actor.account_id}
            )
            raise AuthorizationError(detail="Only the invitation's parties may act on it")

        if await self._expire_if_lapsed(invitation) or invitation.status == InvitationStatus.EXPIRED:
            raise ExpiredError(
                resource_type="invitation",
                resource_id=str(invitation.id),
                expired_at=invitation.expires_at,
                code="INVITATION_EXPIRED",
            )

        if invitation.status not in OPEN_INVITATION_STATUSES:
            raise ConflictError(
                detail=f"Invitation {invitation.id} is already {invitation.status}",
                code="INVITATION_CLOSED",
            )

        return invitation, Party(role.value)

    def _require_turn(self, invitation: ManagementInvitation, party: Party, action: str) -> None:
        if last_offer_party(invitation) == party:
            raise AuthorizationError(
                detail=f"Waiting for the other party; you made the latest offer and cannot {action} it",
                code="NOT_YOUR_TURN",
            )

    def _bind_recipient(self, invitation: ManagementInvitation, actor: Actor, party: Party) -> dict:
        """Attach the recipient's account id the first time they act by email."""
        if party == Party.RECIPIENT and invitation.recipient_id is None:
            return {"recipient_id": actor.account_id}
        return {}

    async def _transition(self, invitation: ManagementInvitation, now: datetime, **values) -> None:
        """Apply ``values`` only if nobody changed the invitation since it was read."""
        result = await self.db.execute(
            update(ManagementInvitation)
            .where(
                ManagementInvitation.id == invitation.id,
                ManagementInvitation.status == invitation.status,
                ManagementInvitation.negotiation_rounds == invitation.negotiation_rounds,
                ManagementInvitation.expires_at >= now,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            logger.warning(
                "Invitation changed concurrently",
                extra={"invitation_id": str(invitation.id), "attempted_status": values.get("status")}
            )
            raise ConflictError(
                detail=f"Invitation {invitation.id} was changed by another action; reload and retry",
                code="CONCURRENT_MODIFICATION",
                retryable=True,
            )
        await self.db.commit()

    def _expire_statement(self, invitation_id: UUID, now: datetime):
        return (
            update(ManagementInvitation)
            .where(
                ManagementInvitation.id == invitation_id,
                ManagementInvitation.status.in_(OPEN_INVITATION_STATUSES),
                ManagementInvitation.expires_at < now,
            )
            .values(status=InvitationStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )

    async def _expire_if_lapsed(self, invitation: ManagementInvitation) -> bool:
        """Flip a lapsed open invitation to EXPIRED and commit the flip."""
        if not invitation_is_lapsed(invitation):
            return False
        result = await self.db.execute(self._expire_statement(invitation.id, utcnow()))
        await self.db.commit()
        if result.rowcount:
            metrics_collector.record_negotiation_action("expire")
            logger.info(
                "Lapsed invitation expired on access",
                extra={"invitation_id": str(invitation.id), "expired_at": invitation.expires_at.isoformat()}
            )
        return True
