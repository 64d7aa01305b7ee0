"""
Pytest configuration and shared fixtures.

This configuration sets up:
- Test discovery paths
- Test markers for categorization
- Settings with profiling disabled and a tiny workload
- OpenTelemetry providers backed by in-memory exporters/readers
- A captured structured-log stream
"""

import io
import json
import sys
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: Tests for individual components
    - integration: Tests that drive the full application
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests that drive the full application")


# =============================================================================
# Logging Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_logging_state() -> Iterator[None]:
    """Each test starts from an unconfigured logging singleton."""
    from src.observability.logging import clear_correlation_id, reset_logging

    reset_logging()
    yield
    clear_correlation_id()
    reset_logging()


@pytest.fixture
def log_stream() -> io.StringIO:
    """Route structured logs into a buffer for the duration of the test."""
    from src.observability.logging import configure_logging

    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream, force=True)
    return stream


@pytest.fixture
def read_logs(log_stream: io.StringIO) -> Callable[..., list[dict[str, Any]]]:
    """Parse every JSON log line written so far, optionally for one logger."""

    def _read(logger: str | None = None) -> list[dict[str, Any]]:
        entries = [
            json.loads(line)
            for line in log_stream.getvalue().splitlines()
            if line.strip()
        ]
        if logger is None:
            return entries
        return [entry for entry in entries if entry.get("logger") == logger]

    return _read


# =============================================================================
# Settings Fixture
# =============================================================================


@pytest.fixture
def test_settings():
    """
    Create test settings with safe defaults.

    Profiling is disabled so no agent is started, and the workload is two
    rounds of small allocations with at most 1ms of sleep.
    """
    from src.core.config import Settings

    return Settings(
        service_name="hello-service-test",
        service_version="0.0.1",
        environment="development",
        port=8080,
        log_level="DEBUG",
        otel_collector_endpoint="localhost:4318",
        metric_export_interval_ms=1000,
        profiling_enabled=False,
        profiling_labels_enabled=True,
        pyroscope_application_name="hello-service-test",
        pyroscope_server_address="http://localhost:4040",
        workload_iterations=2,
        workload_allocation_bytes=1024,
        workload_max_sleep_ms=2,
    )


# =============================================================================
# Telemetry Fixtures
# =============================================================================


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Collects finished spans in memory."""
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Collects metric points on demand."""
    return InMemoryMetricReader()


@pytest.fixture
def telemetry(test_settings, span_exporter, metric_reader, log_stream):
    """Providers wired to the in-memory exporter and reader, not registered globally."""
    from src.observability.tracing import setup_telemetry

    providers = setup_telemetry(
        test_settings,
        span_exporter=span_exporter,
        metric_reader=metric_reader,
        register_global=False,
    )
    yield providers
    providers.shutdown(timeout_millis=1000)


@pytest.fixture
def metric_points(metric_reader: InMemoryMetricReader) -> Callable[[str], list[Any]]:
    """Return every data point recorded for a metric name."""

    def _points(name: str) -> list[Any]:
        data = metric_reader.get_metrics_data()
        if data is None:
            return []
        points: list[Any] = []
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        points.extend(metric.data.data_points)
        return points

    return _points


@pytest.fixture
def profiler():
    """A profiling agent that never contacts a server but still tracks labels."""
    from src.observability.profiling import ProfilingAgent

    return ProfilingAgent(
        application_name="hello-service-test",
        server_address="http://localhost:4040",
        enabled=False,
    )


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
def make_app(test_settings, telemetry, profiler) -> Callable[..., FastAPI]:
    """Build an application around the in-memory telemetry."""
    from src.main import create_app

    def _make(workload: Callable[[], None] | None = None) -> FastAPI:
        return create_app(
            settings=test_settings,
            telemetry=telemetry,
            profiler=profiler,
            workload=workload,
        )

    return _make


@pytest.fixture
def client(make_app) -> Iterator[TestClient]:
    """TestClient with the lifespan running."""
    with TestClient(make_app()) as test_client:
        yield test_client
