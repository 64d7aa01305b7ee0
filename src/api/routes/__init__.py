"""Routes Package - API endpoint definitions.

Note: Import routers directly from individual modules to avoid circular imports.
Example: from src.api.routes.hello import router as hello_router
"""

__all__ = ["hello"]
