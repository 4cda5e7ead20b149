"""Claim and car assignment Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.claim import ClaimStatus


class ClaimRequestRequest(BaseModel):
    """Place a claim on an open reservation request."""

    request_id: UUID = Field(..., description="Reservation request to claim")


class ReleaseClaimRequest(BaseModel):
    """Voluntarily give a claim back."""

    claim_id: UUID = Field(..., description="Claim to release")


class GetClaimRequest(BaseModel):
    """Look up a claim by id."""

    claim_id: UUID = Field(..., description="Claim ID")


class GetActiveClaimRequest(BaseModel):
    """Look up the claim currently holding a request."""

    request_id: UUID = Field(..., description="Reservation request ID")


class AssignCarRequest(BaseModel):
    """Attach one of the caller's vehicles to their claim."""

    request_id: UUID = Field(..., description="Claimed reservation request")
    car_id: UUID = Field(..., description="Vehicle to assign")
    offered_rate: float | None = Field(None, ge=0, description="Daily rate; defaults to the vehicle's rate")


class RequestClaimOut(BaseModel):
    """Claim response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_id: UUID
    host_id: UUID
    car_id: UUID | None = None
    status: ClaimStatus
    offered_rate: float | None = None
    claimed_at: datetime
    claim_expires_at: datetime
    car_assigned_at: datetime | None = None
    released_at: datetime | None = None
