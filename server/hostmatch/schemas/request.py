"""Reservation request Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.reservation_request import RequestPriority, RequestStatus
from .common import PaginatedResponse


class CreateReservationRequest(BaseModel):
    """Intake payload for a new reservation request."""

    request_type: str = Field("STANDARD", max_length=32, description="Intake channel or request category")
    guest_name: str = Field(..., min_length=1, max_length=255)
    guest_email: str | None = Field(None, max_length=255)
    guest_phone: str | None = Field(None, max_length=32)

    vehicle_type: str | None = Field(None, max_length=64)
    vehicle_class: str | None = Field(None, max_length=64)
    vehicle_make: str | None = Field(None, max_length=64)
    vehicle_model: str | None = Field(None, max_length=64)
    quantity: int = Field(1, ge=1, le=50)

    start_date: date | None = Field(None, description="First rental day")
    end_date: date | None = Field(None, description="Last rental day")

    offered_rate: float | None = Field(None, ge=0, description="Daily rate the guest offers")
    total_budget: float | None = Field(None, ge=0)
    is_negotiable: bool = False

    pickup_city: str | None = Field(None, max_length=128)
    pickup_state: str | None = Field(None, max_length=64)
    dropoff_city: str | None = Field(None, max_length=128)
    dropoff_state: str | None = Field(None, max_length=64)

    priority: RequestPriority = RequestPriority.NORMAL
    guest_notes: str | None = None
    admin_notes: str | None = None

    @model_validator(mode="after")
    def check_date_range(self) -> "CreateReservationRequest":
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be provided together")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class GetReservationRequest(BaseModel):
    """Lookup by request id."""

    request_id: UUID = Field(..., description="Reservation request ID")


class ArchiveReservationRequest(BaseModel):
    """Soft-delete a reservation request."""

    request_id: UUID = Field(..., description="Reservation request ID")
    admin_notes: str | None = Field(None, description="Optional note recorded with the archive")


class SearchReservationRequests(BaseModel):
    """Search open demand, newest first within a priority."""

    status: RequestStatus | None = Field(RequestStatus.OPEN, description="Filter by status")
    priority: RequestPriority | None = Field(None, description="Filter by priority")
    pickup_city: str | None = Field(None, description="Filter by pickup city (case-insensitive)")
    cursor: str | None = Field(None, description="Pagination cursor")
    limit: int = Field(20, ge=1, le=100, description="Results per page")


class ReservationRequestOut(BaseModel):
    """Reservation request response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_code: str
    request_type: str
    guest_name: str
    guest_email: str | None = None
    vehicle_type: str | None = None
    vehicle_class: str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    quantity: int
    start_date: date | None = None
    end_date: date | None = None
    duration_days: int | None = None
    offered_rate: float | None = None
    total_budget: float | None = None
    is_negotiable: bool
    pickup_city: str | None = None
    pickup_state: str | None = None
    dropoff_city: str | None = None
    dropoff_state: str | None = None
    priority: RequestPriority
    status: RequestStatus
    claim_attempts: int
    archived_at: datetime | None = None
    created_at: datetime


class SearchReservationRequestsResponse(PaginatedResponse):
    """Page of reservation requests."""

    items: list[ReservationRequestOut]
