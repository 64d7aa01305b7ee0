"""
Observability Package

This package provides the telemetry wiring of the service:
- Structured JSON logging with correlation ids (structlog)
- Tracer and meter providers exporting over OTLP/HTTP (OpenTelemetry)
- Request metric instruments
- Continuous profiling labels (pyroscope)
"""

from src.observability.logging import (
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)

from src.observability.metrics import (
    RequestInstruments,
    create_instruments,
    request_attributes,
)

from src.observability.profiling import ProfilingAgent, current_labels

from src.observability.tracing import (
    TelemetryProviders,
    extract_trace_context,
    get_current_span_id,
    get_current_trace_id,
    resolve_otlp_endpoint,
    setup_telemetry,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Metrics
    "RequestInstruments",
    "create_instruments",
    "request_attributes",
    # Profiling
    "ProfilingAgent",
    "current_labels",
    # Tracing
    "TelemetryProviders",
    "setup_telemetry",
    "resolve_otlp_endpoint",
    "get_current_trace_id",
    "get_current_span_id",
    "extract_trace_context",
]
