"""Health check endpoint for service monitoring.

This module provides health and readiness endpoints for
container orchestration and monitoring systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import Orchestrator, get_db
from app.core.config import settings

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=Dict[str, Any],
    summary="Health Check",
    description="Check if the API service is running.",
)
async def health_check() -> Dict[str, Any]:
    """Perform a basic health check.

    Returns:
        Dictionary with service status and metadata.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.APP_ENV,
        "version": "0.1.0",
    }


@router.get(
    "/health/ready",
    response_model=Dict[str, Any],
    summary="Readiness Check",
    description="Check database connectivity and the default storage provider.",
)
async def readiness_check(
    orchestrator: Orchestrator,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Perform a readiness check including database and storage configuration.

    Args:
        orchestrator: Shared ingestion orchestrator.
        db: Async database session.

    Returns:
        Dictionary with detailed service and dependency status.
    """
    db_status = "healthy"
    db_message = "Connected"

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
    except SQLAlchemyError as e:
        db_status = "unhealthy"
        db_message = str(e)

    registry = orchestrator.registry
    default = registry.default_provider()
    storage_ready = any(
        entry["name"] == default and entry["available"] for entry in registry.available()
    )

    ready = db_status == "healthy" and storage_ready
    return {
        "status": "ready" if ready else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": {
                "status": db_status,
                "message": db_message,
            },
            "storage": {
                "status": "healthy" if storage_ready else "unhealthy",
                "default_provider": default,
            },
        },
    }
