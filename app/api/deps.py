"""Dependency injection utilities for API endpoints.

This module provides common dependencies used across API routes,
such as database sessions and the media service.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.database import get_db
from app.services.ingestion import IngestionOrchestrator
from app.services.media_service import MediaService

# Type alias for database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    """Return the orchestrator created at application startup.

    Args:
        request: Incoming HTTP request.

    Returns:
        The application's shared IngestionOrchestrator.
    """
    return request.app.state.orchestrator


Orchestrator = Annotated[IngestionOrchestrator, Depends(get_orchestrator)]


def get_media_service(db: DBSession, orchestrator: Orchestrator) -> MediaService:
    return MediaService(db, orchestrator)


# Type alias for media service dependency
MediaServiceDep = Annotated[MediaService, Depends(get_media_service)]
