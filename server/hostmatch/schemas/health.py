"""Health-related Pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    READY = "ready"
    NOT_READY = "not_ready"


class HealthResponse(BaseModel):
    """Liveness response schema."""

    status: HealthStatus
    timestamp: datetime = Field(..., description="Current server time, naive UTC")
    version: str = Field(..., description="Service version")


class ReadinessResponse(HealthResponse):
    """Readiness probe: the database answers and the expiry sweep is accounted for."""

    database: Literal["ok", "unavailable"]
    workers: dict[str, bool] = Field(default_factory=dict, description="Background worker name -> running")
