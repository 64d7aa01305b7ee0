"""
hello-service - Main Application Entry Point

This module provides the FastAPI application: one endpoint whose every request
is traced, measured, logged and profiled with a shared correlation id.

Startup order (lifespan):
1. Configure structured logging
2. Start the profiling agent (best-effort)
3. Build tracer and meter providers (fatal on failure)
4. Create the request instruments (fatal on failure)
5. Build the request handler into app.state

Shutdown flushes every buffered span and metric before the process exits.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI

from src.api.routes.hello import router as hello_router
from src.core.config import Settings, get_settings
from src.observability.logging import configure_logging, get_logger
from src.observability.metrics import create_instruments
from src.observability.profiling import ProfilingAgent
from src.observability.tracing import TelemetryProviders, setup_telemetry
from src.services.hello import CorrelatedRequestHandler
from src.services.workload import SyntheticWorkload, Workload

APP_DESCRIPTION = "Hello endpoint with correlated traces, metrics, logs and profiles"

INSTRUMENTATION_NAME = "hello-service.http"


def build_profiler(settings: Settings) -> ProfilingAgent:
    """Build the profiling agent described by the settings."""
    return ProfilingAgent(
        application_name=settings.pyroscope_application_name,
        server_address=settings.pyroscope_server_address,
        enabled=settings.profiling_enabled,
        labels_enabled=settings.profiling_labels_enabled,
        sample_rate=settings.profiling_sample_rate,
        tags={"service_version": settings.service_version},
    )


def build_workload(settings: Settings) -> SyntheticWorkload:
    """Build the synthetic workload described by the settings."""
    return SyntheticWorkload(
        iterations=settings.workload_iterations,
        allocation_bytes=settings.workload_allocation_bytes,
        max_sleep_ms=settings.workload_max_sleep_ms,
    )


def create_app(
    settings: Optional[Settings] = None,
    telemetry: Optional[TelemetryProviders] = None,
    profiler: Optional[ProfilingAgent] = None,
    workload: Optional[Workload] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Collaborators not supplied are built from the settings at startup.

    Args:
        settings: Application settings (default: get_settings())
        telemetry: Pre-built providers, e.g. backed by in-memory exporters
        profiler: Pre-built profiling agent
        workload: Callable run once per request

    Returns:
        FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build telemetry before serving and flush it after."""
        # =====================================================================
        # STARTUP
        # =====================================================================
        configure_logging(level=settings.log_level)
        logger = get_logger(__name__)

        agent = profiler or build_profiler(settings)
        agent.start()

        # TelemetrySetupError / InstrumentCreationError propagate: the server
        # must not start without its providers and instruments.
        providers: Optional[TelemetryProviders] = telemetry
        try:
            providers = providers or setup_telemetry(settings)
            instruments = create_instruments(providers.meter(INSTRUMENTATION_NAME))
        except Exception:
            logger.error("server startup failed", service=settings.service_name)
            agent.shutdown()
            if providers is not None:
                providers.shutdown(timeout_millis=settings.shutdown_timeout_ms)
            raise

        app.state.settings = settings
        app.state.telemetry = providers
        app.state.profiler = agent
        app.state.request_handler = CorrelatedRequestHandler(
            tracer=providers.tracer(INSTRUMENTATION_NAME),
            instruments=instruments,
            profiler=agent,
            workload=workload or build_workload(settings),
            logger=get_logger("hello-service"),
        )
        app.state.initialized = True

        logger.info(
            "server starting",
            service=settings.service_name,
            version=settings.service_version,
            environment=settings.environment,
            host=settings.host,
            port=settings.port,
        )

        try:
            yield
        finally:
            # =================================================================
            # SHUTDOWN
            # =================================================================
            logger.info("server shutting down", service=settings.service_name)

            app.state.initialized = False
            app.state.request_handler = None
            agent.shutdown()
            providers.shutdown(timeout_millis=settings.shutdown_timeout_ms)

    application = FastAPI(
        title=settings.service_name,
        description=APP_DESCRIPTION,
        version=settings.service_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    application.include_router(hello_router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
