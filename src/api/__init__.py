"""API Package - FastAPI routes and dependencies.

Components:
- routes: API endpoint routers (hello)
- deps: FastAPI dependency injection functions

Note: Import routers directly from src.api.routes to avoid circular imports.
"""

__all__ = ["routes", "deps"]
