"""
API Dependencies

This module provides FastAPI dependency injection functions for the API layer.

All dependencies are factory functions that can be overridden in tests using
FastAPI's dependency_overrides mechanism.
"""

from fastapi import HTTPException, Request

from src.services.hello import CorrelatedRequestHandler


# =============================================================================
# get_request_handler Dependency
# =============================================================================


def get_request_handler(request: Request) -> CorrelatedRequestHandler:
    """
    Get the request handler built during application startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    handler = getattr(request.app.state, "request_handler", None)
    if handler is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return handler
