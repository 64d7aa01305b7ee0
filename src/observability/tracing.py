"""
OpenTelemetry Telemetry Bootstrap Module

This module builds the process-wide tracer and meter providers and owns their
shutdown.

- Traces are batch-exported over OTLP/HTTP (BatchSpanProcessor, library
  default batch size and schedule delay).
- Metrics are pushed over OTLP/HTTP by a PeriodicExportingMetricReader on a
  fixed interval; the collector is the metrics sink of record, nothing is
  scraped from this process.
- Export I/O happens on the SDK's background threads. Recording a span or a
  metric only appends to an in-memory buffer.

The providers are returned as an explicit TelemetryProviders handle so request
handlers receive their tracer and meter by injection. Registering them as the
OpenTelemetry globals is a convenience for third-party instrumentation.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from opentelemetry import metrics, trace
from opentelemetry.context import Context
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.propagate import extract
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import (
    DEPLOYMENT_ENVIRONMENT,
    SERVICE_NAME,
    SERVICE_VERSION,
    Resource,
)
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import ALWAYS_ON, ParentBased
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Tracer

from src.core.config import Settings
from src.core.exceptions import TelemetrySetupError
from src.observability.logging import get_logger

TRACES_PATH = "v1/traces"
METRICS_PATH = "v1/metrics"


# =============================================================================
# Resource and Endpoint Resolution
# =============================================================================


def build_resource(
    service_name: str,
    service_version: str,
    environment: str = "development",
) -> Resource:
    """
    Create the Resource attached to every span and metric of this process.

    Args:
        service_name: Reported as service.name
        service_version: Reported as service.version
        environment: Reported as deployment.environment

    Returns:
        OpenTelemetry Resource
    """
    return Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        DEPLOYMENT_ENVIRONMENT: environment,
    })


def resolve_otlp_endpoint(endpoint: str, signal_path: str) -> str:
    """
    Turn a collector address into a per-signal OTLP/HTTP URL.

    A bare host:port uses plain http, since the collector sits on a trusted
    local network. An address that already carries a scheme keeps it.

    Args:
        endpoint: "localhost:4318", "otel-collector:4318" or "http://host:4318/"
        signal_path: TRACES_PATH or METRICS_PATH

    Returns:
        URL such as "http://localhost:4318/v1/traces"

    Examples:
        >>> resolve_otlp_endpoint("localhost:4318", TRACES_PATH)
        'http://localhost:4318/v1/traces'
        >>> resolve_otlp_endpoint("https://collector:4318/", METRICS_PATH)
        'https://collector:4318/v1/metrics'
    """
    base = endpoint.strip().rstrip("/")
    if not base:
        raise ValueError("Collector endpoint must not be empty")
    if "://" not in base:
        base = f"http://{base}"
    return f"{base}/{signal_path}"


# =============================================================================
# Provider Container
# =============================================================================


@dataclass
class TelemetryProviders:
    """
    Process-wide tracer and meter providers.

    Created once at startup, used by every request, shut down once.
    """

    resource: Resource
    tracer_provider: TracerProvider
    meter_provider: MeterProvider
    _shut_down: bool = field(default=False, init=False, repr=False)

    def tracer(self, name: str) -> Tracer:
        """Get a named tracer from this provider."""
        return self.tracer_provider.get_tracer(name)

    def meter(self, name: str) -> metrics.Meter:
        """Get a named meter from this provider."""
        return self.meter_provider.get_meter(name)

    def activate_global(self) -> None:
        """Register both providers as the OpenTelemetry process defaults."""
        trace.set_tracer_provider(self.tracer_provider)
        metrics.set_meter_provider(self.meter_provider)

    def shutdown(self, timeout_millis: int = 30000) -> None:
        """
        Flush all buffered telemetry and close both providers.

        Best-effort: failures are logged, never raised, because the process
        is exiting regardless. Calls after the first are no-ops.

        Args:
            timeout_millis: Upper bound for each flush
        """
        if self._shut_down:
            return
        self._shut_down = True

        logger = get_logger(__name__)

        try:
            if not self.tracer_provider.force_flush(timeout_millis):
                logger.warning("tracer provider flush timed out", timeout_ms=timeout_millis)
            self.tracer_provider.shutdown()
        except Exception as e:
            logger.error(
                "error shutting down tracer provider",
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            self.meter_provider.force_flush(timeout_millis)
            self.meter_provider.shutdown(timeout_millis=timeout_millis)
        except Exception as e:
            logger.error(
                "error shutting down meter provider",
                error=str(e),
                error_type=type(e).__name__,
            )

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down


# =============================================================================
# Provider Bootstrap
# =============================================================================


def setup_tracer_provider(
    resource: Resource,
    endpoint: str,
    span_exporter: Optional[SpanExporter] = None,
) -> TracerProvider:
    """
    Configure a TracerProvider that batch-exports to the collector.

    Args:
        resource: Service resource
        endpoint: Collector address
        span_exporter: Replaces the OTLP exporter; it is attached through a
            SimpleSpanProcessor so spans are visible as soon as they end

    Returns:
        Configured TracerProvider
    """
    # Every server span is recorded, even under an unsampled remote parent,
    # so the trace id handed to logs, metrics and profiles always resolves.
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(root=ALWAYS_ON, remote_parent_not_sampled=ALWAYS_ON),
    )

    if span_exporter is not None:
        provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    else:
        exporter = OTLPSpanExporter(endpoint=resolve_otlp_endpoint(endpoint, TRACES_PATH))
        provider.add_span_processor(BatchSpanProcessor(exporter))

    return provider


def setup_meter_provider(
    resource: Resource,
    endpoint: str,
    export_interval_millis: int = 1000,
    metric_reader: Optional[MetricReader] = None,
) -> MeterProvider:
    """
    Configure a MeterProvider that pushes to the collector periodically.

    Args:
        resource: Service resource
        endpoint: Collector address
        export_interval_millis: Push interval
        metric_reader: Replaces the periodic OTLP reader

    Returns:
        Configured MeterProvider
    """
    if metric_reader is None:
        exporter = OTLPMetricExporter(endpoint=resolve_otlp_endpoint(endpoint, METRICS_PATH))
        metric_reader = PeriodicExportingMetricReader(
            exporter,
            export_interval_millis=export_interval_millis,
        )

    return MeterProvider(resource=resource, metric_readers=[metric_reader])


def setup_telemetry(
    settings: Settings,
    span_exporter: Optional[SpanExporter] = None,
    metric_reader: Optional[MetricReader] = None,
    register_global: bool = True,
) -> TelemetryProviders:
    """
    Build the tracer and meter providers for this process.

    Failure to construct either provider is fatal: the caller must not start
    serving traffic.

    Args:
        settings: Service identity and collector endpoint
        span_exporter: Optional exporter replacing OTLP (tests)
        metric_reader: Optional reader replacing the periodic OTLP push (tests)
        register_global: Also install the providers as OpenTelemetry globals

    Returns:
        TelemetryProviders handle

    Raises:
        TelemetrySetupError: If any provider cannot be built
    """
    try:
        resource = build_resource(
            settings.service_name,
            settings.service_version,
            settings.environment,
        )
    except Exception as e:
        raise TelemetrySetupError(
            f"failed to build telemetry resource: {e}", component="resource"
        ) from e

    try:
        tracer_provider = setup_tracer_provider(
            resource, settings.otel_collector_endpoint, span_exporter
        )
    except Exception as e:
        raise TelemetrySetupError(
            f"failed to initialize tracer provider: {e}", component="tracer"
        ) from e

    try:
        meter_provider = setup_meter_provider(
            resource,
            settings.otel_collector_endpoint,
            settings.metric_export_interval_ms,
            metric_reader,
        )
    except Exception as e:
        tracer_provider.shutdown()
        raise TelemetrySetupError(
            f"failed to initialize meter provider: {e}", component="meter"
        ) from e

    providers = TelemetryProviders(
        resource=resource,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
    )
    if register_global:
        providers.activate_global()

    get_logger(__name__).info(
        "telemetry providers initialized",
        service=settings.service_name,
        collector=settings.otel_collector_endpoint,
        metric_export_interval_ms=settings.metric_export_interval_ms,
    )
    return providers


# =============================================================================
# Trace ID and Span ID Functions
# =============================================================================


def format_trace_id(trace_id: int) -> str:
    """Render a trace id as the 32-character lowercase hex correlation id."""
    return format(trace_id, "032x")


def get_current_trace_id() -> Optional[str]:
    """
    Get the current trace ID as hex string.

    Returns:
        32-character hex string or None if no active span
    """
    span_context = trace.get_current_span().get_span_context()

    if span_context.trace_id == 0:
        return None

    return format_trace_id(span_context.trace_id)


def get_current_span_id() -> Optional[str]:
    """
    Get the current span ID as hex string.

    Returns:
        16-character hex string or None if no active span
    """
    span_context = trace.get_current_span().get_span_context()

    if span_context.span_id == 0:
        return None

    return format(span_context.span_id, "016x")


# =============================================================================
# Context Propagation
# =============================================================================


def extract_trace_context(headers: Optional[dict[str, Any]]) -> Context:
    """
    Extract the caller's trace context from incoming headers.

    Args:
        headers: Request headers (keys are matched case-insensitively)

    Returns:
        Context carrying the remote parent, or an empty Context
    """
    if not headers:
        return Context()
    return extract({key.lower(): value for key, value in headers.items()})
