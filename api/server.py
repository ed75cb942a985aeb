"""FastAPI server for the SharePoint folder sync.

Main entry point for the API server.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, sharepoint
from core.observability.logging import configure_logging, get_logger, with_correlation
from folder_sync.settings import SyncSettings

logger = get_logger("api.server")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Folder sync API starting up...")

    yield

    await sharepoint.close_sync_service()
    logger.info("Folder sync API shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = SyncSettings.from_env()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title="Folder Sync API",
        description="Reconciles SharePoint sales-order folders into reviewable pending items and imports them as Operations",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlate_request(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        with with_correlation(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(sharepoint.router, prefix="/sharepoint", tags=["SharePoint"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
