"""
User Settings API endpoints.

Each authenticated principal reads and updates only their own notification
and display preferences.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.settings import UserSettingsRead, UserSettingsUpdate
from api.services.settings_service import SettingsService
from core.dependencies import get_session, require_authenticated
from core.schema_base import ApiResponse
from core.security import Principal

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[UserSettingsRead])
async def get_user_settings(
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_authenticated),
):
    """Current preferences, created with defaults on first access."""
    return ApiResponse(data=await SettingsService.get_user_settings(db, principal))


@router.put("", response_model=ApiResponse[UserSettingsRead])
async def update_user_settings(
    update: UserSettingsUpdate,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_authenticated),
):
    data = await SettingsService.update_user_settings(db, principal, update)
    return ApiResponse(data=data, message="Settings updated successfully")
