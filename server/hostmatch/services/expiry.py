"""Lazy expiry checks shared by claims, invitations and consent tokens.

Every read or write that touches a deadline-bound record asks these helpers
first. When a deadline has passed the caller flips the record to its expired
state inside its own transaction, before evaluating the requested action.
"""

from datetime import datetime

from ..core.clock import utcnow
from ..models.booking import ReassignmentToken
from ..models.claim import ClaimStatus, RequestClaim
from ..models.invitation import OPEN_INVITATION_STATUSES, ManagementInvitation


def is_past(deadline: datetime | None, now: datetime | None = None) -> bool:
    """Return True when ``deadline`` is strictly before ``now``."""
    if deadline is None:
        return False
    return (now or utcnow()) > deadline


def claim_is_lapsed(claim: RequestClaim, now: datetime | None = None) -> bool:
    """A claim lapses only while it is still waiting for a car."""
    return claim.status == ClaimStatus.PENDING_CAR and is_past(claim.claim_expires_at, now)


def invitation_is_lapsed(invitation: ManagementInvitation, now: datetime | None = None) -> bool:
    """An invitation lapses only while the negotiation is still open."""
    return invitation.status in OPEN_INVITATION_STATUSES and is_past(invitation.expires_at, now)


def token_is_lapsed(token: ReassignmentToken, now: datetime | None = None) -> bool:
    """An unconsumed token lapses once its validity window closes."""
    return token.consumed_at is None and is_past(token.expires_at, now)
