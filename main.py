"""
Parley - Main Application Entry Point

Real-time multi-user chat server: WebSocket chat at /ws, attachment
uploads at /upload.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from parley.core.config import get_settings
from parley.core.logger import setup_logger

logger = setup_logger("parley.main")


def _storage_path() -> str:
    storage_path = get_settings().STORAGE_BASE_PATH
    if not os.path.isabs(storage_path):
        storage_path = os.path.join(os.getcwd(), storage_path)
    return storage_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    setup_logger("parley", settings.LOG_LEVEL)
    logger.info("Starting Parley in %s mode...", settings.ENVIRONMENT)

    from parley.infrastructure.local.database import dispose_engine, init_db

    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down Parley...")
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Parley",
        description="Real-time multi-user chat",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from parley.api import uploads, ws

    app.include_router(ws.router, tags=["chat"])
    app.include_router(uploads.router, tags=["uploads"])

    # Serve uploaded attachments
    storage_path = _storage_path()
    os.makedirs(storage_path, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=storage_path), name="uploads")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
