"""Management invitation model definition."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class InvitationType(str, Enum):
    """Which side of the management relationship sent the invitation."""
    OWNER_INVITES_MANAGER = "OWNER_INVITES_MANAGER"
    MANAGER_INVITES_OWNER = "MANAGER_INVITES_OWNER"


class InvitationStatus(str, Enum):
    """Invitation status enumeration."""
    PENDING = "PENDING"
    COUNTER_OFFERED = "COUNTER_OFFERED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


OPEN_INVITATION_STATUSES = (InvitationStatus.PENDING, InvitationStatus.COUNTER_OFFERED)


class ManagementInvitation(Base):
    """Bilateral negotiation over delegated vehicle management terms."""

    __tablename__ = "management_invitations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    invitation_type: Mapped[InvitationType] = mapped_column(String(32), nullable=False)

    # Parties
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sender_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    vehicle_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Terms
    proposed_owner_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    proposed_manager_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    counter_owner_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    counter_manager_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    negotiation_rounds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    negotiation_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Permissions granted to the manager
    can_edit_listing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_adjust_pricing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_message_guests: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_approve_bookings: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_handle_issues: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    status: Mapped[InvitationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvitationStatus.PENDING,
        index=True
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "proposed_owner_percent + proposed_manager_percent = 100",
            name="ck_invitation_proposed_split_sums_to_100"
        ),
        CheckConstraint(
            "counter_owner_percent IS NULL OR counter_owner_percent + counter_manager_percent = 100",
            name="ck_invitation_counter_split_sums_to_100"
        ),
        CheckConstraint(
            "negotiation_rounds >= 0 AND negotiation_rounds <= 5",
            name="ck_invitation_negotiation_rounds_range"
        ),
        CheckConstraint("length(recipient_email) > 0", name="ck_invitation_recipient_email_not_empty"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_INVITATION_STATUSES

    def __repr__(self) -> str:
        return (
            f"<ManagementInvitation(id={self.id}, type={self.invitation_type}, "
            f"status={self.status}, rounds={self.negotiation_rounds})>"
        )
