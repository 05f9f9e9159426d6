"""FastAPI application entry point.

This module initializes the FastAPI application with CORS,
middleware, route registration and the shared ingestion pipeline.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.endpoints import health, media
from app.core.config import settings
from app.core.logging import setup_logging
from app.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from app.services.database import AsyncSessionLocal, init_models
from app.services.dedup import RepositoryDedupIndex
from app.services.geocoder import build_geocoder
from app.services.ingestion import IngestionOrchestrator
from app.storage.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Builds the provider registry, geocoder and orchestrator on startup
    and closes their HTTP client on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    # Startup
    logger.info("Starting Media Ingestion API...")
    logger.info(f"Environment: {settings.APP_ENV}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    if settings.APP_ENV == "development":
        await init_models()

    registry = ProviderRegistry(settings)
    geocoder = build_geocoder(settings, client=registry.client)
    app.state.orchestrator = IngestionOrchestrator(
        registry,
        geocoder,
        RepositoryDedupIndex(AsyncSessionLocal),
        settings=settings,
    )
    logger.info(f"Default storage provider: {registry.default_provider()}")
    logger.info(f"Geocoder: {geocoder.name}")

    yield

    # Shutdown
    logger.info("Shutting down Media Ingestion API...")
    await geocoder.aclose()
    await registry.aclose()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    setup_logging()

    app = FastAPI(
        title="Media Ingestion API",
        description=(
            "Content-addressed media ingestion for a photo gallery. Extracts "
            "EXIF metadata, de-duplicates by SHA-256 and stores objects on "
            "local disk or one of several signed bucket stores."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handling middleware
    app.add_middleware(ErrorHandlerMiddleware)

    # Setup exception handlers
    setup_exception_handlers(app)

    # Register routers
    app.include_router(health.router)
    app.include_router(media.router, prefix=settings.API_PREFIX)

    # Serve locally stored objects from the same origin
    mount_path = settings.MEDIA_LOCAL_PUBLIC_URL.rstrip("/")
    if mount_path.startswith("/"):
        app.mount(
            mount_path,
            StaticFiles(directory=os.path.abspath(settings.MEDIA_LOCAL_DIR), check_dir=False),
            name="uploads",
        )

    return app


# Create the application instance
app = create_application()
