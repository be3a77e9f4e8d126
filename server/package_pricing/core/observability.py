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
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest
import structlog

from .config import settings

SERVICE_NAME = "package-pricing-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

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

# Pricing metrics
FLIGHT_QUOTE_REQUESTS = Counter(
    'flight_quote_requests_total',
    'Upstream flight quote requests',
    ['source', 'outcome'],
    registry=REGISTRY
)

FARES_FOUND = Counter(
    'flight_fares_found_total',
    'Fares returned to callers after cheapest-per-origin/date selection',
    ['source'],
    registry=REGISTRY
)

LEDGER_WRITES = Counter(
    'pricing_ledger_writes_total',
    'Pricing ledger upserts',
    ['operation'],
    registry=REGISTRY
)

CSV_IMPORT_ROWS = Counter(
    'pricing_csv_import_rows_total',
    'CSV import rows processed',
    ['outcome'],
    registry=REGISTRY
)

DEPARTURE_SYNCS = Counter(
    'departure_syncs_total',
    'Departure sync runs against the tour platform',
    ['outcome'],
    registry=REGISTRY
)

SYNCED_RATES = Histogram(
    'departure_sync_rates',
    'Rates reported by a single departure sync',
    buckets=(0, 5, 10, 25, 50, 100, 250, 500, 1000),
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


def _resource(app_name: str) -> Resource:
    return Resource.create({
        "service.name": app_name,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource(app_name))
    trace.set_tracer_provider(provider)

    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(app_name), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy():
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Collector for pricing metrics."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, status_code: int, duration_seconds: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration_seconds)

    @staticmethod
    def record_quote_request(source: str, outcome: str):
        """Record one upstream quote call: outcome is 'fare', 'empty' or 'error'."""
        FLIGHT_QUOTE_REQUESTS.labels(source=source, outcome=outcome).inc()

    @staticmethod
    def record_fares_found(source: str, count: int):
        FARES_FOUND.labels(source=source).inc(count)

    @staticmethod
    def record_ledger_write(operation: str):
        """Record a ledger write: 'created' or 'updated'."""
        LEDGER_WRITES.labels(operation=operation).inc()

    @staticmethod
    def record_csv_rows(accepted: int, rejected: int):
        CSV_IMPORT_ROWS.labels(outcome="accepted").inc(accepted)
        CSV_IMPORT_ROWS.labels(outcome="rejected").inc(rejected)

    @staticmethod
    def record_sync(outcome: str, rates_count: int = 0):
        DEPARTURE_SYNCS.labels(outcome=outcome).inc()
        if outcome == "success":
            SYNCED_RATES.observe(rates_count)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
