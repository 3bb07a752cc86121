from __future__ import annotations

import logging

from fastapi import APIRouter

from app.config import settings
from pipelines.source_client import get_runtime_config

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check reporting which providers are configured."""
    config = get_runtime_config()
    return {
        "status": "ready",
        "version": settings.app_version,
        "mode": config.mode.value,
        "youtube": "configured" if settings.youtube_api_key else "not configured",
        "openai": "configured" if settings.openai_api_key else "not configured",
    }
