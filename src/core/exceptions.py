"""
Custom exceptions for hello-service.

This module provides a hierarchy of custom exceptions for the service.
All exceptions inherit from HelloServiceException and include error codes for
consistent error handling and logging.

Taxonomy:
- Startup-fatal: TelemetrySetupError, InstrumentCreationError. The process
  must not begin serving traffic when either is raised.
- Request-time: WorkloadError. Surfaces as an HTTP 500 after the span and
  profiling labels have been cleaned up.
"""

from enum import Enum
from typing import Any


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for hello-service exceptions.

    These codes provide a consistent way to identify error types in logs.
    """

    SERVICE_ERROR = "SERVICE_ERROR"
    TELEMETRY_SETUP_ERROR = "TELEMETRY_SETUP_ERROR"
    INSTRUMENT_ERROR = "INSTRUMENT_ERROR"
    WORKLOAD_ERROR = "WORKLOAD_ERROR"


# =============================================================================
# Base Exception
# =============================================================================


class HelloServiceException(Exception):
    """
    Base exception for all hello-service errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.SERVICE_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# TelemetrySetupError
# =============================================================================


class TelemetrySetupError(HelloServiceException):
    """
    Exception for tracer or meter provider construction failures.

    Attributes:
        component: Which part of the bootstrap failed ("resource", "tracer",
            "meter").
    """

    def __init__(
        self,
        message: str,
        component: str,
        error_code: str = ErrorCode.TELEMETRY_SETUP_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.component = component


# =============================================================================
# InstrumentCreationError
# =============================================================================


class InstrumentCreationError(HelloServiceException):
    """
    Exception for metric instrument creation failures.

    Attributes:
        instrument_name: Name of the instrument that could not be created.
    """

    def __init__(
        self,
        message: str,
        instrument_name: str,
        error_code: str = ErrorCode.INSTRUMENT_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.instrument_name = instrument_name


# =============================================================================
# WorkloadError
# =============================================================================


class WorkloadError(HelloServiceException):
    """Exception for an invalid synthetic workload configuration."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.WORKLOAD_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
