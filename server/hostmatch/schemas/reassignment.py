"""Vehicle reassignment Pydantic schemas."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus, HostReviewStatus


class TokenState(str, Enum):
    """Consent token state as seen by the guest."""
    VALID = "VALID"
    CONSUMED = "CONSUMED"
    SUPERSEDED = "SUPERSEDED"
    EXPIRED = "EXPIRED"


class InitiateReassignmentRequest(BaseModel):
    """Propose a replacement vehicle after a host rejection."""

    booking_id: UUID = Field(..., description="Booking whose vehicle changes")
    new_car_id: UUID = Field(..., description="Replacement vehicle")
    reason: str = Field(..., min_length=1, max_length=2000, description="Why the vehicle changes")


class ConsumeTokenRequest(BaseModel):
    """Guest consent to a proposed vehicle change."""

    token: str = Field(..., min_length=1, max_length=64)


class TokenStatusRequest(BaseModel):
    """Look up a consent token without consuming it."""

    token: str = Field(..., min_length=1, max_length=64)


class ReassignmentTokenOut(BaseModel):
    """Issued consent token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    token: str
    booking_id: UUID
    original_car_id: UUID
    new_car_id: UUID
    reason: str
    expires_at: datetime
    consumed_at: datetime | None = None
    superseded_at: datetime | None = None
    consent_url: str | None = None


class TokenStatusOut(BaseModel):
    """Read-only consent page view."""

    booking_id: UUID
    original_car_id: UUID
    new_car_id: UUID
    reason: str
    state: TokenState
    expires_at: datetime


class BookingOut(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    car_id: UUID
    host_id: UUID
    guest_name: str
    start_date: date
    end_date: date
    status: BookingStatus
    host_review_status: HostReviewStatus | None = None
    original_car_id: UUID | None = None
    vehicle_change_reason: str | None = None
