"""API Routes Package."""

from api.routes import health, sharepoint

__all__ = [
    "health",
    "sharepoint",
]
