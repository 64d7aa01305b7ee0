"""
Correlated Request Handler

One pass per request, in this order:

1. Open a server span, child of any caller context, tagged with path/method.
2. Take the span's trace id as the correlation id.
3. Attach the correlation id as a profiling label and as the log context.
4. Log "handling request".
5. Run the workload, timing it wall-clock.
6. Count the request and record its duration, tagged {path, method, trace_id}.
7. Log "request completed".
8. Return the fixed 200 response.

Span end, profiling label detach and log context reset are unconditional:
they run through context managers whatever happens in steps 4-7. A failing
workload is recorded on the span, logged, and re-raised; no metrics are
recorded for it.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer

from src.observability.logging import correlation_id_context
from src.observability.metrics import RequestInstruments, request_attributes
from src.observability.profiling import ProfilingAgent
from src.observability.tracing import extract_trace_context, format_trace_id
from src.services.workload import Workload

SPAN_NAME = "handleRequest"
RESPONSE_BODY = "Hello, World!"
RESPONSE_MEDIA_TYPE = "text/plain"
RESPONSE_STATUS = 200


@dataclass(frozen=True)
class HelloResponse:
    """Outcome of one handled request."""

    status_code: int
    body: str
    media_type: str
    trace_id: str
    duration_ms: float


class CorrelatedRequestHandler:
    """
    Traces, measures, logs and profiles a single request.

    Every collaborator is injected and shared read-only across concurrent
    requests; the handler itself holds no per-request state.
    """

    def __init__(
        self,
        tracer: Tracer,
        instruments: RequestInstruments,
        profiler: ProfilingAgent,
        workload: Workload,
        logger: structlog.BoundLogger,
    ) -> None:
        self.tracer = tracer
        self.instruments = instruments
        self.profiler = profiler
        self.workload = workload
        self.logger = logger

    def handle(
        self,
        path: str,
        method: str,
        remote_addr: str = "unknown",
        headers: Optional[dict[str, Any]] = None,
    ) -> HelloResponse:
        """
        Handle one request.

        Args:
            path: Request path
            method: HTTP method
            remote_addr: Client address for the start log line
            headers: Request headers, used to continue the caller's trace

        Returns:
            HelloResponse with the fixed body and the request's correlation id

        Raises:
            Exception: Whatever the workload raises, after cleanup
        """
        with self.tracer.start_as_current_span(
            SPAN_NAME,
            context=extract_trace_context(headers),
            kind=SpanKind.SERVER,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            span.set_attribute("http.route", path)
            span.set_attribute("http.method", method)

            trace_id = format_trace_id(span.get_span_context().trace_id)

            with self.profiler.labels(trace_id=trace_id), correlation_id_context(trace_id):
                start_time = time.perf_counter()
                try:
                    self.logger.info(
                        "handling request",
                        path=path,
                        method=method,
                        remote_addr=remote_addr,
                        trace_id=trace_id,
                    )

                    self.workload()

                    duration_ms = (time.perf_counter() - start_time) * 1000
                    self.instruments.record(
                        duration_ms,
                        request_attributes(path, method, trace_id),
                    )

                    self.logger.info(
                        "request completed",
                        path=path,
                        method=method,
                        duration_ms=round(duration_ms, 3),
                        status=RESPONSE_STATUS,
                        trace_id=trace_id,
                    )
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    self.logger.error(
                        "request failed",
                        path=path,
                        method=method,
                        duration_ms=round((time.perf_counter() - start_time) * 1000, 3),
                        error=str(e),
                        error_type=type(e).__name__,
                        trace_id=trace_id,
                    )
                    raise

            span.set_attribute("http.status_code", RESPONSE_STATUS)
            span.set_status(Status(StatusCode.OK))

        return HelloResponse(
            status_code=RESPONSE_STATUS,
            body=RESPONSE_BODY,
            media_type=RESPONSE_MEDIA_TYPE,
            trace_id=trace_id,
            duration_ms=duration_ms,
        )
