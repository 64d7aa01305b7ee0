"""
Core configuration module for hello-service.

Settings Class Implementation and Settings Singleton.

This module provides centralized configuration management using Pydantic Settings.
Configuration is loaded from environment variables with the HELLO_SERVICE_ prefix.
The variables the demo stack already sets (PORT, OTEL_COLLECTOR_ENDPOINT and the
PYROSCOPE_* family) are accepted as aliases so the compose file needs no changes.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env(name: str, *aliases: str) -> AliasChoices:
    """Accept the prefixed variable first, then any legacy aliases."""
    return AliasChoices(f"HELLO_SERVICE_{name}", *aliases)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the HELLO_SERVICE_ prefix for environment variables.
    Example: HELLO_SERVICE_PORT=8080
    """

    # =========================================================================
    # Service Identity
    # =========================================================================
    service_name: str = Field(
        default="hello-service",
        description="Name of the service, reported as service.name",
    )
    service_version: str = Field(
        default="1.0.0",
        description="Version of the service, reported as service.version",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # =========================================================================
    # HTTP Listener
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        validation_alias=_env("PORT", "PORT"),
        description="Port the service listens on",
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs",
    )

    # =========================================================================
    # Telemetry Export (OTLP/HTTP to the collector)
    # =========================================================================
    otel_collector_endpoint: str = Field(
        default="localhost:4318",
        validation_alias=_env("OTEL_COLLECTOR_ENDPOINT", "OTEL_COLLECTOR_ENDPOINT"),
        description="Collector address, host:port or a full http(s) URL",
    )
    metric_export_interval_ms: int = Field(
        default=1000,
        ge=100,
        description="Interval between periodic metric pushes",
    )
    shutdown_timeout_ms: int = Field(
        default=30000,
        ge=0,
        description="Upper bound for flushing telemetry during shutdown",
    )

    # =========================================================================
    # Continuous Profiling (pyroscope)
    # =========================================================================
    profiling_enabled: bool = Field(
        default=True,
        validation_alias=_env("PROFILING_ENABLED", "PYROSCOPE_PROFILING_ENABLED"),
        description="Start the continuous profiling agent at startup",
    )
    profiling_labels_enabled: bool = Field(
        default=True,
        validation_alias=_env("PROFILING_LABELS_ENABLED", "PYROSCOPE_LABELS_ENABLED"),
        description="Tag profiling samples with the request trace id",
    )
    pyroscope_application_name: str = Field(
        default="hello-service",
        validation_alias=_env(
            "PYROSCOPE_APPLICATION_NAME", "PYROSCOPE_APPLICATION_NAME"
        ),
        description="Application name profiles are uploaded under",
    )
    pyroscope_server_address: str = Field(
        default="http://localhost:4040",
        validation_alias=_env("PYROSCOPE_SERVER_ADDRESS", "PYROSCOPE_SERVER_ADDRESS"),
        description="Profiling server the agent uploads to",
    )
    profiling_sample_rate: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Profiler samples per second",
    )

    # =========================================================================
    # Synthetic Workload
    # =========================================================================
    workload_iterations: int = Field(
        default=100,
        ge=0,
        description="Rounds of allocate-and-sleep per request",
    )
    workload_allocation_bytes: int = Field(
        default=1024 * 1024,
        ge=0,
        description="Bytes allocated on every round",
    )
    workload_max_sleep_ms: int = Field(
        default=10,
        ge=0,
        description="Exclusive upper bound of the random per-round sleep",
    )

    model_config = {
        "env_prefix": "HELLO_SERVICE_",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {sorted(_VALID_LOG_LEVELS)}")
        return level

    @field_validator("pyroscope_server_address")
    @classmethod
    def validate_pyroscope_server_address(cls, v: str) -> str:
        """Validate profiling server URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Pyroscope server address must start with http:// or https://")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.
    This provides singleton behavior without global state.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
