"""
Integration tests: correlated telemetry across concurrent requests.

Scenario: N concurrent requests to /hello yield N spans, N counter increments,
N histogram observations, N start/completion log pairs with N distinct
correlation ids, and N HTTP 200 responses. Shutdown flushes all of it.
"""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Sequence

import httpx
import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricExportResult,
    MetricsData,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

pytestmark = pytest.mark.integration

CONCURRENT_REQUESTS = 10


class CollectingMetricExporter(MetricExporter):
    """Keeps every exported batch in memory."""

    def __init__(self) -> None:
        super().__init__()
        self.batches: list[MetricsData] = []

    def export(self, metrics_data: MetricsData, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:
        self.batches.append(metrics_data)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        return None


def _points(batches: Sequence[MetricsData], name: str) -> list:
    points = []
    for batch in batches[-1:]:
        for resource_metrics in batch.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        points.extend(metric.data.data_points)
    return points


async def _timed_get(client: httpx.AsyncClient) -> tuple[httpx.Response, float]:
    started = time.perf_counter()
    response = await client.get("/hello")
    return response, (time.perf_counter() - started) * 1000


@asynccontextmanager
async def _serving(app) -> AsyncIterator[httpx.AsyncClient]:
    """Run the app lifespan around an in-process client."""
    transport = httpx.ASGITransport(app=app)
    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


async def _fire(client: httpx.AsyncClient, count: int) -> list[tuple[httpx.Response, float]]:
    return list(await asyncio.gather(*(_timed_get(client) for _ in range(count))))


class TestConcurrentRequests:
    @pytest.mark.asyncio
    async def test_ten_concurrent_requests(
        self, make_app, span_exporter, metric_points, read_logs
    ) -> None:
        async with _serving(make_app()) as client:
            results = await _fire(client, CONCURRENT_REQUESTS)
            counts = metric_points("http.requests.total")
            durations = metric_points("http.request.duration")

        responses = [response for response, _ in results]
        assert [r.status_code for r in responses] == [200] * CONCURRENT_REQUESTS
        assert all(r.text == "Hello, World!" for r in responses)

        spans = span_exporter.get_finished_spans()
        span_ids = {format(span.context.trace_id, "032x") for span in spans}
        assert len(spans) == CONCURRENT_REQUESTS
        assert len(span_ids) == CONCURRENT_REQUESTS
        assert {r.headers["x-trace-id"] for r in responses} == span_ids

        logs_by_trace: dict[str, list[str]] = defaultdict(list)
        for entry in read_logs("hello-service"):
            logs_by_trace[entry["trace_id"]].append(entry["message"])
        assert set(logs_by_trace) == span_ids
        assert all(
            events == ["handling request", "request completed"]
            for events in logs_by_trace.values()
        )

        assert sum(point.value for point in counts) == CONCURRENT_REQUESTS
        assert sum(point.count for point in durations) == CONCURRENT_REQUESTS
        assert {dict(point.attributes)["trace_id"] for point in counts} == span_ids

    @pytest.mark.asyncio
    async def test_recorded_duration_within_caller_measurement(
        self, make_app, metric_points
    ) -> None:
        async with _serving(make_app()) as client:
            results = await _fire(client, CONCURRENT_REQUESTS)
            durations = metric_points("http.request.duration")

        caller_ms = {r.headers["x-trace-id"]: elapsed for r, elapsed in results}
        assert len(durations) == CONCURRENT_REQUESTS
        for point in durations:
            trace_id = dict(point.attributes)["trace_id"]
            assert 0 <= point.sum <= caller_ms[trace_id]

    @pytest.mark.asyncio
    async def test_labels_never_leak_between_requests(self, make_app, profiler) -> None:
        from src.observability.tracing import get_current_trace_id

        observed: list[tuple[str | None, dict]] = []

        def workload() -> None:
            time.sleep(0.002)
            observed.append((get_current_trace_id(), profiler.current_labels()))

        async with _serving(make_app(workload=workload)) as client:
            await _fire(client, CONCURRENT_REQUESTS)

        assert len(observed) == CONCURRENT_REQUESTS
        for trace_id, labels in observed:
            assert labels == {"trace_id": trace_id}
        assert profiler.current_labels() == {}


class TestShutdownFlush:
    @pytest.mark.asyncio
    async def test_shutdown_flushes_batched_telemetry(
        self, test_settings, profiler, log_stream
    ) -> None:
        """
        With long batch and push intervals nothing is exported before
        shutdown; shutdown must deliver every recorded span and observation.
        """
        from src.main import create_app
        from src.observability.tracing import TelemetryProviders, build_resource

        resource = build_resource("hello-service-test", "0.0.1")
        span_exporter = InMemorySpanExporter()
        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(
            BatchSpanProcessor(span_exporter, schedule_delay_millis=60_000)
        )
        metric_exporter = CollectingMetricExporter()
        meter_provider = MeterProvider(
            resource=resource,
            metric_readers=[
                PeriodicExportingMetricReader(metric_exporter, export_interval_millis=60_000)
            ],
        )
        telemetry = TelemetryProviders(
            resource=resource,
            tracer_provider=tracer_provider,
            meter_provider=meter_provider,
        )

        app = create_app(settings=test_settings, telemetry=telemetry, profiler=profiler)
        async with _serving(app) as client:
            results = await _fire(client, CONCURRENT_REQUESTS)
            assert span_exporter.get_finished_spans() == ()
            assert metric_exporter.batches == []

        assert all(response.status_code == 200 for response, _ in results)
        assert len(span_exporter.get_finished_spans()) == CONCURRENT_REQUESTS
        counts = _points(metric_exporter.batches, "http.requests.total")
        assert sum(point.value for point in counts) == CONCURRENT_REQUESTS
        assert telemetry.is_shut_down
