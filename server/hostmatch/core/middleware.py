"""Request context middleware: request ids, access logs and request metrics."""

import logging
import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .observability import metrics_collector

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probe and scrape traffic is counted but not logged outside development
QUIET_PATHS = frozenset({"/health", "/ready", "/metrics", "/favicon.ico"})


def client_ip(request: Request) -> str:
    """Best guess at the caller's address behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def endpoint_label(request: Request) -> str:
    """Route template for metric labels, falling back to the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id for the lifetime of each request.

    The id comes from the ``X-Request-ID`` header or is generated, is bound
    into structlog's context variables so every log line carries it, and is
    echoed back on the response. Each request is timed and counted; unless
    ``log_requests`` is off or the path is quiet, one access record is
    written on completion.
    """

    def __init__(self, app: ASGIApp, log_requests: bool = True, quiet_paths: frozenset[str] = QUIET_PATHS):
        super().__init__(app)
        self.log_requests = log_requests
        self.quiet_paths = quiet_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            duration = time.perf_counter() - started
            metrics_collector.record_request(
                request.method, endpoint_label(request), response.status_code, duration
            )
            if self.log_requests and request.url.path not in self.quiet_paths:
                self._log(request, response.status_code, duration)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _log(self, request: Request, status_code: int, duration: float) -> None:
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 2),
            "client_ip": client_ip(request),
        }
        if status_code >= 500:
            logger.error("Request failed", extra=extra)
        elif status_code >= 400:
            logger.warning("Request refused", extra=extra)
        else:
            logger.info("Request completed", extra=extra)


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Setup all middleware on the FastAPI app.

    Args:
        app: FastAPI application instance
        enable_logging: Whether to write one access record per request
    """
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=enable_logging,
        quiet_paths=frozenset() if settings.debug else QUIET_PATHS,
    )
