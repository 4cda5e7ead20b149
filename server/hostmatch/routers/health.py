"""RPC-style liveness ping."""

from fastapi import APIRouter

from ..core.clock import utcnow
from ..core.observability import SERVICE_VERSION
from ..schemas.health import HealthResponse, HealthStatus

router = APIRouter(prefix="/v1/health", tags=["health"])


def liveness() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY, timestamp=utcnow(), version=SERVICE_VERSION)


@router.post("/ping", response_model=HealthResponse)
async def health_ping() -> HealthResponse:
    """Liveness over the same POST transport as the rest of the API; never touches the database."""
    return liveness()
