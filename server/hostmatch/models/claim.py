"""Request claim model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base

if TYPE_CHECKING:
    from .reservation_request import ReservationRequest


class ClaimStatus(str, Enum):
    """Claim status enumeration."""
    PENDING_CAR = "PENDING_CAR"
    CAR_SELECTED = "CAR_SELECTED"
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"
    RELEASED = "RELEASED"


# Statuses that hold exclusivity over the parent request
ACTIVE_CLAIM_STATUSES = (ClaimStatus.PENDING_CAR, ClaimStatus.CAR_SELECTED)

# Statuses from which a host may claim the same request again
REVIVABLE_CLAIM_STATUSES = (ClaimStatus.EXPIRED, ClaimStatus.RELEASED)


class RequestClaim(Base):
    """Exclusive, time-boxed option held by one host on one request."""

    __tablename__ = "request_claims"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    request_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("reservation_requests.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    host_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("hosts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    car_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="SET NULL"),
        nullable=True
    )

    status: Mapped[ClaimStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ClaimStatus.PENDING_CAR,
        index=True
    )
    offered_rate: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)

    claimed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    claim_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    car_assigned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("request_id", "host_id", name="uq_request_claim_request_host"),
        CheckConstraint("claim_expires_at > claimed_at", name="ck_request_claim_expiry_after_claim"),
        CheckConstraint(
            "status NOT IN ('CAR_SELECTED', 'CONFIRMED') OR car_id IS NOT NULL",
            name="ck_request_claim_selected_has_car"
        ),
        # At most one claim may hold a request at a time
        Index(
            "uq_request_claims_one_active_per_request",
            "request_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING_CAR', 'CAR_SELECTED')"),
            sqlite_where=text("status IN ('PENDING_CAR', 'CAR_SELECTED')"),
        ),
    )

    request: Mapped["ReservationRequest"] = relationship("ReservationRequest", back_populates="claims")

    @property
    def is_active(self) -> bool:
        """Return True while the claim holds exclusivity over its request."""
        return self.status in ACTIVE_CLAIM_STATUSES

    def __repr__(self) -> str:
        return (
            f"<RequestClaim(id={self.id}, request_id={self.request_id}, "
            f"host_id={self.host_id}, status={self.status})>"
        )
