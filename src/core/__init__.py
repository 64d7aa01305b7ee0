"""
Core module for hello-service.

This module contains configuration and exceptions.
"""

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    ErrorCode,
    HelloServiceException,
    InstrumentCreationError,
    TelemetrySetupError,
    WorkloadError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "HelloServiceException",
    "TelemetrySetupError",
    "InstrumentCreationError",
    "WorkloadError",
]
