"""Booking and reassignment token model definitions."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Bookings in these statuses occupy the vehicle for their date range
BLOCKING_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ACTIVE)


class HostReviewStatus(str, Enum):
    """Host review outcome for a booking."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Booking(Base):
    """Rental booking of one vehicle over a date range."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    car_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    host_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("hosts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    # Host review
    host_review_status: Mapped[HostReviewStatus | None] = mapped_column(String(20), nullable=True)
    host_reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    host_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    host_review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Vehicle change
    original_car_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    vehicle_change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_booking_date_range_ordered"),
        CheckConstraint("length(guest_name) > 0", name="ck_booking_guest_name_not_empty"),
    )

    tokens: Mapped[list["ReassignmentToken"]] = relationship(
        "ReassignmentToken",
        back_populates="booking",
        order_by="ReassignmentToken.created_at",
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, car_id={self.car_id}, status={self.status}, "
            f"review={self.host_review_status})>"
        )


class ReassignmentToken(Base):
    """Single-use, time-boxed consent credential for a vehicle change."""

    __tablename__ = "reassignment_tokens"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    original_car_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    new_car_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    issued_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("length(token) > 0", name="ck_reassignment_token_not_empty"),
        CheckConstraint("length(reason) > 0", name="ck_reassignment_token_reason_not_empty"),
        CheckConstraint("new_car_id != original_car_id", name="ck_reassignment_token_car_changes"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="tokens")

    def is_usable(self, now: datetime) -> bool:
        """Return True if the token can still be consumed at ``now``."""
        return self.consumed_at is None and self.superseded_at is None and self.expires_at >= now

    def __repr__(self) -> str:
        return (
            f"<ReassignmentToken(id={self.id}, booking_id={self.booking_id}, "
            f"expires_at={self.expires_at}, consumed_at={self.consumed_at})>"
        )
