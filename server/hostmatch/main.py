"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .core.clock import utcnow
from .core.config import settings
from .core.database import close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    validation_exception_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    SERVICE_NAME,
    SERVICE_VERSION,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import API_ROUTERS
from .routers.health import liveness
from .schemas.health import HealthResponse, HealthStatus, ReadinessResponse
from .workers.manager import worker_manager

setup_structured_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Sets up telemetry, creates tables and starts the expiry sweep on startup;
    stops the sweep and disposes the engine on shutdown.
    """
    logger.info(
        "Engine starting",
        extra={
            "environment": settings.environment,
            "claim_ttl_minutes": settings.claim_ttl_minutes,
            "background_workers": settings.enable_background_workers,
        }
    )

    setup_tracing()
    setup_metrics()
    instrument_sqlalchemy(engine)
    await init_db()

    if settings.enable_background_workers:
        await worker_manager.start_all()

    try:
        yield
    finally:
        await worker_manager.stop_all()
        await close_db()
        logger.info("Engine stopped")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as an RFC 9457 problem document."""
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        use_lifespan: Attach startup/shutdown hooks; tests build the app
            without them and supply their own database

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Hostmatch Engine",
        description=(
            "RPC-over-HTTP API that matches guest rental demand to host vehicles, "
            "resolves competing host claims, runs guest-consented vehicle changes "
            "and negotiates management splits between hosts"
        ),
        version=SERVICE_VERSION,
        debug=settings.debug,
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    setup_middleware(app, enable_logging=True)
    instrument_fastapi(app)
    register_exception_handlers(app)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health Check",
        response_model=HealthResponse,
    )
    async def health_check() -> HealthResponse:
        """Liveness probe; does not touch the database."""
        return liveness()

    @app.get(
        "/ready",
        tags=["Health"],
        summary="Readiness Check",
        response_model=ReadinessResponse,
    )
    async def readiness_check():
        """Readiness probe: database reachable and background workers reported."""
        database = "ok"
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Readiness check failed", extra={"error": str(e)})
            database = "unavailable"

        ready = database == "ok"
        response = ReadinessResponse(
            status=HealthStatus.READY if ready else HealthStatus.NOT_READY,
            timestamp=utcnow(),
            version=SERVICE_VERSION,
            database=database,
            workers=worker_manager.get_worker_status(),
        )
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    @app.get(
        "/info",
        status_code=status.HTTP_200_OK,
        tags=["Info"],
        summary="Service Information",
        response_model=dict,
    )
    async def service_info():
        """Service name, version and the engine's configured limits."""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
            "debug": settings.debug,
            "limits": {
                "claim_ttl_minutes": settings.claim_ttl_minutes,
                "reassignment_token_hours": settings.reassignment_token_hours,
                "invitation_ttl_days": settings.invitation_ttl_days,
                "max_negotiation_rounds": settings.max_negotiation_rounds,
                "management_platform_fee": settings.management_platform_fee,
            },
            "endpoints": {
                "health": "/health",
                "readiness": "/ready",
                "metrics": "/metrics",
                "docs": "/docs" if settings.debug else None,
            },
        }

    for router in API_ROUTERS:
        app.include_router(router)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hostmatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
