"""FastAPI routers package."""

from .claims import router as claims_router
from .commission import router as commission_router
from .health import router as health_router
from .host import router as host_router
from .metrics import router as metrics_router
from .negotiation import router as negotiation_router
from .reassignment import router as reassignment_router
from .requests import router as requests_router

__all__ = [
    "claims_router",
    "commission_router",
    "health_router",
    "host_router",
    "metrics_router",
    "negotiation_router",
    "reassignment_router",
    "requests_router",
]

# Registration order for the application
API_ROUTERS = (
    health_router,
    requests_router,
    claims_router,
    reassignment_router,
    negotiation_router,
    commission_router,
    host_router,
    metrics_router,
)
