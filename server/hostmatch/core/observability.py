"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Histogram, generate_latest, CollectorRegistry
import structlog

from .config import settings

SERVICE_NAME = "hostmatch-engine"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Claim metrics
CLAIMS_CREATED = Counter(
    'request_claims_created_total',
    'Total claims successfully placed on reservation requests',
    registry=REGISTRY
)

CLAIMS_CONFLICTED = Counter(
    'request_claims_conflicted_total',
    'Total claim attempts rejected because another host holds the request',
    registry=REGISTRY
)

CLAIMS_EXPIRED = Counter(
    'request_claims_expired_total',
    'Total claims expired before a car was assigned',
    ['trigger'],
    registry=REGISTRY
)

CLAIMS_RELEASED = Counter(
    'request_claims_released_total',
    'Total claims voluntarily released by hosts',
    registry=REGISTRY
)

# Assignment metrics
CARS_ASSIGNED = Counter(
    'request_cars_assigned_total',
    'Total vehicles assigned to claimed requests',
    registry=REGISTRY
)

ASSIGNMENT_CONFLICTS = Counter(
    'request_assignment_conflicts_total',
    'Total assignments rejected because of overlapping bookings',
    registry=REGISTRY
)

# Reassignment metrics
REASSIGNMENT_TOKENS_ISSUED = Counter(
    'reassignment_tokens_issued_total',
    'Total vehicle-change consent tokens issued',
    registry=REGISTRY
)

REASSIGNMENT_TOKENS_CONSUMED = Counter(
    'reassignment_tokens_consumed_total',
    'Total vehicle-change consent tokens consumed by guests',
    registry=REGISTRY
)

# Negotiation metrics
NEGOTIATION_ACTIONS = Counter(
    'management_negotiation_actions_total',
    'Total management invitation actions',
    ['action'],
    registry=REGISTRY
)

# Notification metrics
NOTIFICATIONS_FAILED = Counter(
    'notifications_failed_total',
    'Total notifications that could not be delivered',
    ['kind'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    # The request id is bound into contextvars by RequestContextMiddleware
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=getattr(logging, settings.log_level))


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())
    trace.set_tracer_provider(provider)

    # Exporter only when a collector is configured
    if settings.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )

    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the async engine's sync core with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for allocation and negotiation metrics."""

    @staticmethod
    def record_claim_created():
        CLAIMS_CREATED.inc()

    @staticmethod
    def record_claim_conflicted():
        CLAIMS_CONFLICTED.inc()

    @staticmethod
    def record_claim_expired(trigger: str = "lazy", count: int = 1):
        """Record claim expirations, tagged by what noticed them (lazy read or sweep)."""
        CLAIMS_EXPIRED.labels(trigger=trigger).inc(count)

    @staticmethod
    def record_claim_released():
        CLAIMS_RELEASED.inc()

    @staticmethod
    def record_car_assigned():
        CARS_ASSIGNED.inc()

    @staticmethod
    def record_assignment_conflict():
        ASSIGNMENT_CONFLICTS.inc()

    @staticmethod
    def record_token_issued():
        REASSIGNMENT_TOKENS_ISSUED.inc()

    @staticmethod
    def record_token_consumed():
        REASSIGNMENT_TOKENS_CONSUMED.inc()

    @staticmethod
    def record_negotiation_action(action: str, count: int = 1):
        """Record a negotiation action (send, counter, accept, decline, expire)."""
        NEGOTIATION_ACTIONS.labels(action=action).inc(count)

    @staticmethod
    def record_notification_failed(kind: str):
        NOTIFICATIONS_FAILED.labels(kind=kind).inc()

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration: float):
        """Record one served HTTP request."""
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
