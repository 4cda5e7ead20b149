"""Host eligibility Pydantic schemas."""

from pydantic import BaseModel, Field


class HostStats(BaseModel):
    """Activity record evaluated against an eligibility rule."""

    days_active: int = Field(..., ge=0)
    completed_trips: int = Field(..., ge=0)
    at_fault_claims: int = Field(0, ge=0)


class EligibilityOut(BaseModel):
    """Outcome of an eligibility evaluation."""

    eligible: bool
    path: str | None = Field(None, description="Which qualifying path was met: primary or alternate")
    reasons: list[str] = Field(default_factory=list, description="Unmet requirements when not eligible")
