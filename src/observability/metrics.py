"""
Request Metrics Module

This module owns the metric instruments recorded by the request handler.

- http.requests.total: monotonic counter, one increment per completed request
- http.request.duration: histogram of request duration in milliseconds

Both instruments are created exactly once at startup from an injected Meter
and then shared by every request. The OpenTelemetry SDK instruments are safe
for concurrent use, so recording needs no locking on our side. Recording while
the request span is current lets the SDK attach trace exemplars.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from opentelemetry.metrics import Counter, Histogram, Meter

from src.core.exceptions import InstrumentCreationError

REQUESTS_TOTAL_NAME = "http.requests.total"
REQUEST_DURATION_NAME = "http.request.duration"

# Attribute keys shared by both instruments
ATTR_PATH = "path"
ATTR_METHOD = "method"
ATTR_TRACE_ID = "trace_id"


def request_attributes(
    path: str,
    method: str,
    trace_id: Optional[str] = None,
) -> dict[str, str]:
    """
    Build the attribute set carried by every request observation.

    Args:
        path: Request path
        method: HTTP method
        trace_id: Correlation id of the request, if any

    Returns:
        {path, method[, trace_id]}
    """
    attributes = {ATTR_PATH: path, ATTR_METHOD: method}
    if trace_id:
        attributes[ATTR_TRACE_ID] = trace_id
    return attributes


@dataclass(frozen=True)
class RequestInstruments:
    """The counter and histogram recorded once per completed request."""

    requests_total: Counter
    request_duration: Histogram

    def record(self, duration_ms: float, attributes: Mapping[str, str]) -> None:
        """
        Count one completed request and record its duration.

        Args:
            duration_ms: Elapsed wall-clock time; negative values are clamped to 0
            attributes: Attribute set from request_attributes()
        """
        self.requests_total.add(1, attributes=attributes)
        self.request_duration.record(max(duration_ms, 0.0), attributes=attributes)


def create_instruments(meter: Meter) -> RequestInstruments:
    """
    Create the request instruments.

    Args:
        meter: Meter obtained from the process MeterProvider

    Returns:
        RequestInstruments

    Raises:
        InstrumentCreationError: If either instrument cannot be created
    """
    try:
        requests_total = meter.create_counter(
            REQUESTS_TOTAL_NAME,
            unit="1",
            description="Total number of HTTP requests",
        )
    except Exception as e:
        raise InstrumentCreationError(
            f"failed to create request counter: {e}",
            instrument_name=REQUESTS_TOTAL_NAME,
        ) from e

    try:
        request_duration = meter.create_histogram(
            REQUEST_DURATION_NAME,
            unit="ms",
            description="HTTP request duration",
        )
    except Exception as e:
        raise InstrumentCreationError(
            f"failed to create request duration histogram: {e}",
            instrument_name=REQUEST_DURATION_NAME,
        ) from e

    return RequestInstruments(
        requests_total=requests_total,
        request_duration=request_duration,
    )
