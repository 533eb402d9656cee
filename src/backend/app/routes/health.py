"""
Health check endpoint handler.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.database import get_session, ping_database
from core.exceptions import ServiceUnavailableError

router = APIRouter()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_settings),
):
    """
    Health check endpoint for monitoring.
    Probes the database with ``SELECT 1``; responds 503 when it fails.
    """
    if not await ping_database(db):
        raise ServiceUnavailableError()

    return {
        "success": True,
        "status": "healthy",
        "version": app_settings.api.app_version,
        "services": {"database": {"status": "healthy"}},
    }
