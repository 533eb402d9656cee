"""CRUD operations for system-wide and per-user settings."""
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from crud import base_crud
from db.models import SYSTEM_SETTINGS_ID, SystemSettings, UserSettings, utc_now

# Notification fields restored on reset; display preferences are left alone
NOTIFICATION_DEFAULTS: Dict[str, Any] = {
    "notification_email": "",
    "receive_new_complaints": True,
    "receive_status_updates": True,
}


def system_defaults(config: Settings) -> Dict[str, Any]:
    """Initial values for the system settings row."""
    return {
        "smtp_host": config.email.default_smtp_host,
        "smtp_port": config.email.default_smtp_port,
        "base_url": config.email.default_base_url,
        "system_name": config.api.app_name,
    }


async def get_system_settings(db: AsyncSession) -> Optional[SystemSettings]:
    """
    Get the singleton system settings row.

    Returns:
        Settings or None if nothing has been saved yet
    """
    return await base_crud.find_by_id(db, SystemSettings, SYSTEM_SETTINGS_ID)


async def get_or_create_system_settings(
    db: AsyncSession, defaults: Optional[Dict[str, Any]] = None
) -> SystemSettings:
    existing = await get_system_settings(db)
    if existing:
        return existing
    return await base_crud.create(
        db, SystemSettings, obj_in={"id": SYSTEM_SETTINGS_ID, **(defaults or {})}
    )


async def update_system_settings(
    db: AsyncSession, system_settings: SystemSettings, values: Dict[str, Any]
) -> SystemSettings:
    return await base_crud.update(
        db, system_settings, obj_in={**values, "updated_at": utc_now()}
    )


async def get_user_settings(db: AsyncSession, user_id: str) -> Optional[UserSettings]:
    return await base_crud.find_one(db, UserSettings, filters={"user_id": user_id})


async def get_or_create_user_settings(db: AsyncSession, user_id: str) -> UserSettings:
    existing = await get_user_settings(db, user_id)
    if existing:
        return existing
    return await base_crud.create(db, UserSettings, obj_in={"user_id": user_id})


async def update_user_settings(
    db: AsyncSession, user_settings: UserSettings, values: Dict[str, Any]
) -> UserSettings:
    return await base_crud.update(
        db, user_settings, obj_in={**values, "updated_at": utc_now()}
    )


async def reset_notification_settings(db: AsyncSession, user_id: str) -> UserSettings:
    """Restore notification preferences to defaults, creating the row if needed."""
    user_settings = await get_or_create_user_settings(db, user_id)
    return await update_user_settings(db, user_settings, dict(NOTIFICATION_DEFAULTS))


async def get_user_settings_map(
    db: AsyncSession, user_ids: Iterable[str]
) -> Dict[str, UserSettings]:
    """Settings rows for the given users, keyed by user id. Missing rows are omitted."""
    ids = list(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(UserSettings).where(UserSettings.user_id.in_(ids)))
    return {row.user_id: row for row in result.scalars().all()}
