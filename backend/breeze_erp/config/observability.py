"""
Tracing, metrics and operation logging.

Domain counters are created against the global meter provider at import time;
once `setup_observability` installs the Prometheus-backed provider they show
up on /metrics next to the native request metrics.
"""

import os
from typing import Optional

import structlog
from opentelemetry import trace, metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource

SERVICE_NAME = "breeze-erp"
SERVICE_VERSION = "1.0.0"


def setup_observability(
    service_name: str = SERVICE_NAME,
    environment: Optional[str] = None,
    enable_prometheus: bool = True,
) -> None:
    """
    Install tracer and meter providers and bind service fields into the log context.

    Args:
        service_name: Name of the service for tracing
        environment: Environment (development, staging, production); read from
            APP_ENV when omitted
        enable_prometheus: Feed OTEL metrics into the prometheus_client registry
            served by the /metrics router
    """
    environment = environment or os.getenv("APP_ENV", "development")

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service_name=service_name,
        environment=environment
    )

    configure_tracing(service_name, environment)

    if enable_prometheus:
        configure_metrics()

    logger = structlog.get_logger()
    logger.info(
        "Observability configured",
        service_name=service_name,
        environment=environment,
        prometheus_enabled=enable_prometheus,
    )


def configure_tracing(service_name: str, environment: str) -> None:
    """Configure OpenTelemetry distributed tracing."""
    resource = Resource.create({
        "service.name": service_name,
        "service.version": SERVICE_VERSION,
        "environment": environment,
    })

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    if os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true":
        tracer_provider.add_span_processor(
            BatchSpanProcessor(ConsoleSpanExporter()))


def configure_metrics() -> None:
    """Configure OpenTelemetry metrics with Prometheus export.

    The reader registers with the default prometheus_client registry, so the
    application's own /metrics endpoint serves these alongside native metrics.
    """
    meter_provider = MeterProvider(metric_readers=[PrometheusMetricReader()])
    metrics.set_meter_provider(meter_provider)


def instrument_fastapi(app) -> None:
    """Instrument FastAPI application with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine) -> None:
    """Instrument SQLAlchemy engine with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def get_meter(name: str) -> metrics.Meter:
    return metrics.get_meter(name)


class trace_operation:
    """Context manager for tracing business operations with structured logging."""

    def __init__(self, operation_name: str, **attributes):
        self.operation_name = operation_name
        self.attributes = {k: v for k, v in attributes.items() if v is not None}
        self.tracer = get_tracer(__name__)
        self.logger = structlog.get_logger()
        self.span: Optional[trace.Span] = None

    def __enter__(self):
        self.span = self.tracer.start_span(
            self.operation_name,
            attributes={k: str(v) for k, v in self.attributes.items()}
        )
        self.logger.debug(
            "Operation started",
            operation=self.operation_name,
            **self.attributes
        )
        return self.span

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.logger.warning(
                "Operation failed",
                operation=self.operation_name,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                **self.attributes
            )
            if self.span:
                self.span.record_exception(exc_val)
                self.span.set_status(trace.Status(
                    trace.StatusCode.ERROR, str(exc_val)))
        else:
            self.logger.info(
                "Operation completed",
                operation=self.operation_name,
                **self.attributes
            )
            if self.span:
                self.span.set_status(trace.Status(trace.StatusCode.OK))

        if self.span:
            self.span.end()


class PerformanceMonitor:
    """Request and tax-calculation timing, mirrored into OTEL instruments."""

    def __init__(self):
        self.meter = get_meter(__name__)
        self.request_duration = self.meter.create_histogram(
            name="api_request_duration_ms",
            description="API request duration in milliseconds",
            unit="ms"
        )
        self.request_counter = self.meter.create_counter(
            name="api_request_count",
            description="Total number of API requests"
        )
        self.error_counter = self.meter.create_counter(
            name="api_error_count",
            description="Total number of unhandled API errors"
        )
        self.tax_calculation_duration = self.meter.create_histogram(
            name="tax_calculation_duration_ms",
            description="Invoice tax calculation duration in milliseconds",
            unit="ms"
        )
        self.request_count = 0
        self.error_count = 0
        self._total_duration_ms = 0.0

    @property
    def avg_response_time_ms(self) -> float:
        if not self.request_count:
            return 0.0
        return round(self._total_duration_ms / self.request_count, 2)

    def record_request(self, endpoint: str, method: str, duration_ms: float, status_code: int):
        attributes = {
            "endpoint": endpoint,
            "method": method,
            "status_code": str(status_code)
        }
        self.request_duration.record(duration_ms, attributes)
        self.request_counter.add(1, attributes)
        self.request_count += 1
        self._total_duration_ms += duration_ms

    def record_error(self):
        self.error_counter.add(1)
        self.error_count += 1

    def record_tax_calculation(self, calculation_type: str, duration_ms: float):
        self.tax_calculation_duration.record(
            duration_ms,
            {"calculation_type": calculation_type}
        )


performance_monitor = PerformanceMonitor()

_domain_meter = get_meter("breeze_erp.domain")
auth_login_counter = _domain_meter.create_counter(
    name="auth_login_total",
    description="Total number of successful logins"
)
auth_login_failed_counter = _domain_meter.create_counter(
    name="auth_login_failed_total",
    description="Total number of failed login attempts"
)
stock_movement_counter = _domain_meter.create_counter(
    name="stock_movement_total",
    description="Inventory and finished-product stock movements"
)
irn_generated_counter = _domain_meter.create_counter(
    name="einvoice_irn_generated_total",
    description="Total number of IRNs issued"
)
ewb_generated_counter = _domain_meter.create_counter(
    name="einvoice_ewb_generated_total",
    description="Total number of e-way bills issued"
)
document_created_counter = _domain_meter.create_counter(
    name="document_created_total",
    description="Invoices, challans and purchase requests created"
)

__all__ = [
    "setup_observability",
    "configure_tracing",
    "configure_metrics",
    "instrument_fastapi",
    "instrument_sqlalchemy",
    "get_tracer",
    "get_meter",
    "trace_operation",
    "PerformanceMonitor",
    "performance_monitor",
    "auth_login_counter",
    "auth_login_failed_counter",
    "stock_movement_counter",
    "irn_generated_counter",
    "ewb_generated_counter",
    "document_created_counter",
]
