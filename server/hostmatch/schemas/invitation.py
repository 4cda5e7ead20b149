"""Management invitation and negotiation Pydantic schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.invitation import InvitationStatus, InvitationType


class Party(str, Enum):
    """Side of an invitation."""
    SENDER = "SENDER"
    RECIPIENT = "RECIPIENT"


class Role(str, Enum):
    """Side of the management relationship."""
    OWNER = "OWNER"
    MANAGER = "MANAGER"


class Terms(BaseModel):
    """Owner/manager percent split."""

    model_config = ConfigDict(frozen=True)

    owner_percent: int
    manager_percent: int


class NegotiationEntry(BaseModel):
    """One offer in an invitation's negotiation history."""

    round: int = Field(..., ge=0)
    party: Party
    role: Role
    actor: str
    owner_percent: int
    manager_percent: int
    timestamp: datetime
    note: str | None = None


class Permissions(BaseModel):
    """What the manager may do on the owner's vehicles."""

    can_edit_listing: bool = True
    can_adjust_pricing: bool = True
    can_message_guests: bool = True
    can_approve_bookings: bool = True
    can_handle_issues: bool = True


class SendInvitationRequest(BaseModel):
    """Open a management negotiation."""

    invitation_type: InvitationType
    recipient_email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    recipient_id: str | None = Field(None, description="Recipient account, when already known")
    vehicle_ids: list[UUID] = Field(default_factory=list)
    owner_percent: int = Field(..., description="Proposed owner share")
    manager_percent: int = Field(..., description="Proposed manager share")
    permissions: Permissions = Field(default_factory=Permissions)
    message: str | None = Field(None, max_length=2000)


class InvitationTokenRequest(BaseModel):
    """Address an invitation by its token."""

    token: str = Field(..., min_length=1, max_length=64)


class CounterOfferRequest(BaseModel):
    """Propose a different split."""

    token: str = Field(..., min_length=1, max_length=64)
    owner_percent: int
    manager_percent: int
    note: str | None = Field(None, max_length=2000)


class DeclineInvitationRequest(BaseModel):
    """End a negotiation without agreement."""

    token: str = Field(..., min_length=1, max_length=64)
    reason: str | None = Field(None, max_length=2000)


class InvitationOut(BaseModel):
    """Management invitation response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    token: str
    invitation_type: InvitationType
    sender_id: str
    sender_email: str
    recipient_id: str | None = None
    recipient_email: str
    vehicle_ids: list[str]
    proposed_owner_percent: int
    proposed_manager_percent: int
    counter_owner_percent: int | None = None
    counter_manager_percent: int | None = None
    negotiation_rounds: int
    negotiation_history: list[NegotiationEntry]
    can_edit_listing: bool
    can_adjust_pricing: bool
    can_message_guests: bool
    can_approve_bookings: bool
    can_handle_issues: bool
    status: InvitationStatus
    message: str | None = None
    decline_reason: str | None = None
    responded_at: datetime | None = None
    expires_at: datetime


class EarningsSplit(BaseModel):
    """Revenue shares after the platform fee."""

    platform_percent: float
    owner_percent: float
    manager_percent: float


class NegotiationSummary(BaseModel):
    """Where a negotiation stands from one party's point of view."""

    status: InvitationStatus
    party: Party
    current_terms: Terms
    last_offer_by: Party
    rounds_used: int
    rounds_remaining: int
    can_respond: bool
    can_counter_offer: bool
    earnings: EarningsSplit
    expires_at: datetime
