"""Health check endpoints."""

import sqlite3
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel

from folder_sync.db import connect
from folder_sync.settings import SyncSettings


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


def _database_status(settings: SyncSettings) -> str:
    if not settings.db_path.exists():
        return "down"
    try:
        conn = connect(settings.db_path)
        try:
            conn.execute("SELECT 1 FROM sharepoint_pending LIMIT 1")
        finally:
            conn.close()
        return "up"
    except sqlite3.Error:
        return "down"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    settings = SyncSettings.from_env()
    database = _database_status(settings)
    return HealthResponse(
        status="healthy" if database == "up" else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version="1.0.0",
        services={
            "api": "up",
            "database": database,
            "source": settings.source_uri.split(":", 1)[0],
        }
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check(response: Response) -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}
