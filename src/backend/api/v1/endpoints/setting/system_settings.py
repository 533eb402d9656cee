"""
System Settings API endpoints.

Manages the singleton SMTP and application configuration used for
complaint notification emails.

**Key Features:**
- Read/update settings (admin only)
- SMTP password stored encrypted and always returned masked
- Connection testing endpoint via test email
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.settings import (
    EmailTestRequest,
    EmailTestResult,
    SystemSettingsRead,
    SystemSettingsUpdate,
)
from api.services.settings_service import SettingsService
from core.config import Settings, get_settings
from core.dependencies import get_notification_dispatcher, get_session, require_admin
from core.schema_base import ApiResponse
from core.security import Principal

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[SystemSettingsRead],
    summary="Get system settings",
    dependencies=[Depends(require_admin)],
)
async def get_system_settings(
    db: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_settings),
):
    """
    Get the system settings.

    Returns:
        ApiResponse[SystemSettingsRead]: SMTP host/port/user, admin email,
        base URL, system name and ``isConfigured``. ``smtpPass`` is masked.

    **Permissions:** Admin only
    """
    return ApiResponse(data=await SettingsService.get_system_settings(db, app_settings))


@router.put(
    "",
    response_model=ApiResponse[SystemSettingsRead],
    summary="Update system settings",
)
async def update_system_settings(
    update: SystemSettingsUpdate,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
    app_settings: Settings = Depends(get_settings),
):
    """
    Update the system settings.

    Only provided fields are changed. Sending the masked value back as
    ``smtpPass`` keeps the stored password; an empty string clears it.

    **Permissions:** Admin only
    """
    data = await SettingsService.update_system_settings(db, update, principal, app_settings)
    return ApiResponse(data=data, message="Settings updated successfully")


@router.post(
    "/test-email",
    response_model=ApiResponse[EmailTestResult],
    summary="Send a test email",
    dependencies=[Depends(require_admin)],
)
async def send_test_email(
    body: EmailTestRequest,
    db: AsyncSession = Depends(get_session),
    dispatcher=Depends(get_notification_dispatcher),
    app_settings: Settings = Depends(get_settings),
):
    """
    Send a test email using the saved SMTP configuration.

    The outcome is reported in the body (``success``/``message``/``details``)
    rather than as an HTTP error, so configuration problems can be shown to
    the administrator.

    **Permissions:** Admin only
    """
    result = await SettingsService.send_test_email(db, dispatcher, body.recipient, app_settings)
    return ApiResponse(data=result, message=result.message)
