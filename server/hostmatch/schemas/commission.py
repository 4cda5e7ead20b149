"""Commission and deposit Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.host import DepositMode


class QuoteCommissionRequest(BaseModel):
    """Preview the rate a path/tier choice would produce."""

    path: str | None = Field(None, description="Monetization path: insurance or tiers")
    tier: str | None = Field(None, description="Tier within the path")


class CommissionQuote(BaseModel):
    """Commission rate and the host's payout share."""

    path: str | None
    tier: str | None
    rate: float
    payout_percentage: float


class ApproveHostRequest(BaseModel):
    """Approve a host and apply the fleet-size default rate."""

    host_id: UUID
    fleet_size: int = Field(..., ge=0, description="Number of vehicles the host declared")


class ApplyCommissionRequest(BaseModel):
    """Set a host's commission from a declared path/tier."""

    host_id: UUID
    path: str | None = None
    tier: str | None = None
    reason: str = Field("path_selection", min_length=1, max_length=500)


class ListCommissionAuditRequest(BaseModel):
    """Commission history of one host."""

    host_id: UUID


class HostCommissionOut(BaseModel):
    """Host commission state."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    commission_rate: float | None = None
    commission_path: str | None = None
    commission_tier: str | None = None
    approved_at: datetime | None = None


class CommissionAuditEntryOut(BaseModel):
    """Commission audit response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    host_id: UUID
    old_rate: float | None = None
    new_rate: float
    path: str | None = None
    tier: str | None = None
    reason: str
    actor: str
    created_at: datetime


class UpdateDepositSettingsRequest(BaseModel):
    """Host deposit preferences."""

    host_id: UUID
    default_deposit: float | None = Field(None, ge=0)
    make_deposits: dict[str, float] = Field(default_factory=dict, description="Per-make deposit overrides")


class DepositSettingsOut(BaseModel):
    """Normalized deposit settings."""

    host_id: UUID
    default_deposit: int | None = None
    make_deposits: dict[str, int]
    rejected_makes: dict[str, float] = Field(
        default_factory=dict,
        description="Per-make entries dropped for being below the minimum"
    )


class VehicleDepositRequest(BaseModel):
    vehicle_id: UUID


class VehicleDepositOut(BaseModel):
    """Deposit a guest pays for one vehicle."""

    vehicle_id: UUID
    deposit_mode: DepositMode
    deposit: int
