"""API Package.

FastAPI server for the SharePoint folder sync.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
