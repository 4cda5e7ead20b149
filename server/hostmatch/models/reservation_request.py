"""Reservation request model definition."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base

if TYPE_CHECKING:
    from .claim import RequestClaim


class RequestStatus(str, Enum):
    """Reservation request status enumeration."""
    OPEN = "OPEN"
    CLAIMED = "CLAIMED"
    CAR_ASSIGNED = "CAR_ASSIGNED"
    FULFILLED = "FULFILLED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"
    ARCHIVED = "ARCHIVED"


class RequestPriority(str, Enum):
    """Reservation request priority enumeration."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ReservationRequest(Base):
    """Guest demand ticket waiting to be matched with a host vehicle."""

    __tablename__ = "reservation_requests"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    request_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    request_type: Mapped[str] = mapped_column(String(32), nullable=False, default="STANDARD")

    # Guest contact
    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Vehicle requirements
    vehicle_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vehicle_class: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vehicle_make: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vehicle_model: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Dates
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Pricing
    offered_rate: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    total_budget: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    is_negotiable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Locations
    pickup_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    pickup_state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dropoff_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dropoff_state: Mapped[str | None] = mapped_column(String(64), nullable=True)

    priority: Mapped[RequestPriority] = mapped_column(
        String(16),
        nullable=False,
        default=RequestPriority.NORMAL,
        index=True
    )
    status: Mapped[RequestStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RequestStatus.OPEN,
        index=True
    )

    claim_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    guest_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_request_quantity_positive"),
        CheckConstraint("length(guest_name) > 0", name="ck_request_guest_name_not_empty"),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date >= start_date",
            name="ck_request_date_range_ordered"
        ),
        CheckConstraint("claim_attempts >= 0", name="ck_request_claim_attempts_non_negative"),
    )

    claims: Mapped[list["RequestClaim"]] = relationship(
        "RequestClaim",
        back_populates="request",
        order_by="RequestClaim.claimed_at",
    )

    @property
    def has_date_range(self) -> bool:
        """Return True when the request pins a concrete rental window."""
        return self.start_date is not None and self.end_date is not None

    def __repr__(self) -> str:
        return (
            f"<ReservationRequest(id={self.id}, code='{self.request_code}', "
            f"status={self.status}, priority={self.priority})>"
        )
