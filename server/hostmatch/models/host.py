"""Host and vehicle model definitions."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.clock import utcnow
from ..core.database import Base


class DepositMode(str, Enum):
    """How a vehicle's security deposit is chosen."""
    GLOBAL = "GLOBAL"
    INDIVIDUAL = "INDIVIDUAL"
    NONE = "NONE"


class Host(Base):
    """Account that owns or manages vehicles."""

    __tablename__ = "hosts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # Commission
    commission_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    commission_path: Mapped[str | None] = mapped_column(String(32), nullable=True)
    commission_tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Deposits
    default_deposit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    make_deposits: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_host_name_not_empty"),
        CheckConstraint(
            "commission_rate IS NULL OR (commission_rate >= 0 AND commission_rate <= 1)",
            name="ck_host_commission_rate_range"
        ),
        CheckConstraint("default_deposit IS NULL OR default_deposit >= 25", name="ck_host_default_deposit_floor"),
    )

    vehicles: Mapped[list["Vehicle"]] = relationship("Vehicle", back_populates="host")

    def __repr__(self) -> str:
        return f"<Host(id={self.id}, email='{self.email}', commission_rate={self.commission_rate})>"


class Vehicle(Base):
    """Rentable car owned by a host."""

    __tablename__ = "vehicles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    host_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("hosts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    make: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str] = mapped_column(String(64), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    daily_rate: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)

    deposit_mode: Mapped[DepositMode] = mapped_column(String(16), nullable=False, default=DepositMode.GLOBAL)
    deposit_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("daily_rate >= 0", name="ck_vehicle_daily_rate_non_negative"),
        CheckConstraint(
            "deposit_mode IN ('GLOBAL', 'INDIVIDUAL', 'NONE')",
            name="ck_vehicle_deposit_mode_valid"
        ),
    )

    host: Mapped["Host"] = relationship("Host", back_populates="vehicles")

    @property
    def display_name(self) -> str:
        prefix = f"{self.year} " if self.year else ""
        return f"{prefix}{self.make} {self.model}"

    def __repr__(self) -> str:
        return f"<Vehicle(id={self.id}, host_id={self.host_id}, {self.make} {self.model}, active={self.is_active})>"
