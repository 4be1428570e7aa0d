"""Public API routers exposed by the FastAPI application."""

from . import health, uploads

__all__ = [
    "health",
    "uploads",
]
