"""Commission audit model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import utcnow
from ..core.database import Base


class CommissionAuditEntry(Base):
    """Append-only record of every commission rate change on a host."""

    __tablename__ = "commission_audit_entries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    host_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("hosts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    old_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    new_rate: Mapped[float] = mapped_column(Float, nullable=False)
    path: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        index=True
    )

    __table_args__ = (
        CheckConstraint("new_rate >= 0 AND new_rate <= 1", name="ck_commission_audit_new_rate_range"),
        CheckConstraint("length(reason) > 0", name="ck_commission_audit_reason_not_empty"),
        CheckConstraint("length(actor) > 0", name="ck_commission_audit_actor_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<CommissionAuditEntry(id={self.id}, host_id={self.host_id}, "
            f"{self.old_rate} -> {self.new_rate}, actor='{self.actor}')>"
        )
