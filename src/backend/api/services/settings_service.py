"""Service layer for system-wide and per-user settings."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.settings import (
    MASKED_SECRET,
    EmailTestResult,
    SystemSettingsRead,
    SystemSettingsUpdate,
    UserSettingsRead,
    UserSettingsUpdate,
)
from api.services.notification_service import NotificationDispatcher
from core.config import Settings
from core.decorators import handle_database_exceptions
from core.encryption import EncryptionError, encrypt_value
from core.exceptions import ConfigurationError
from core.security import Principal
from crud import settings_crud
from db.models import SystemSettings

logger = logging.getLogger(__name__)


def to_read(system: SystemSettings) -> SystemSettingsRead:
    """Public view of the system settings. The SMTP password never leaves masked."""
    return SystemSettingsRead(
        smtp_host=system.smtp_host,
        smtp_port=system.smtp_port,
        smtp_user=system.smtp_user,
        smtp_pass=MASKED_SECRET if system.encrypted_smtp_pass else "",
        admin_email=system.admin_email,
        is_configured=system.is_configured,
        base_url=system.base_url,
        system_name=system.system_name,
        updated_at=system.updated_at,
    )


class SettingsService:
    """Reads and writes settings, applying masking and encryption of secrets."""

    @staticmethod
    @handle_database_exceptions("get_system_settings")
    async def get_system_settings(db: AsyncSession, config: Settings) -> SystemSettingsRead:
        system = await settings_crud.get_or_create_system_settings(
            db, settings_crud.system_defaults(config)
        )
        return to_read(system)

    @staticmethod
    @handle_database_exceptions("update_system_settings")
    async def update_system_settings(
        db: AsyncSession,
        update: SystemSettingsUpdate,
        principal: Principal,
        config: Settings,
    ) -> SystemSettingsRead:
        """
        Apply a partial update.

        ``smtpPass`` semantics:
        - omitted, null or the mask: keep the stored password
        - empty string: clear it
        - anything else: encrypt and store

        Raises:
            ConfigurationError: If the password cannot be encrypted (no secret key)
        """
        system = await settings_crud.get_or_create_system_settings(
            db, settings_crud.system_defaults(config)
        )

        values = {
            field: value
            for field, value in update.model_dump(exclude_unset=True, exclude={"smtp_pass"}).items()
            if value is not None
        }

        if update.smtp_pass is not None and update.smtp_pass != MASKED_SECRET:
            if update.smtp_pass == "":
                values["encrypted_smtp_pass"] = None
            else:
                try:
                    values["encrypted_smtp_pass"] = encrypt_value(
                        update.smtp_pass, config.security.secret_key
                    )
                except EncryptionError as e:
                    logger.error(f"Failed to encrypt SMTP password: {e}")
                    raise ConfigurationError(
                        "Cannot store the SMTP password: encryption is not configured"
                    )

        values["updated_by"] = principal.user_id
        system = await settings_crud.update_system_settings(db, system, values)

        changed = sorted(field for field in values if field != "updated_by")
        logger.info(
            f"System settings updated by {principal.email}: {', '.join(changed) or 'no fields'}"
        )
        return to_read(system)

    @staticmethod
    @handle_database_exceptions("send_test_email")
    async def send_test_email(
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        recipient: str,
        config: Settings,
    ) -> EmailTestResult:
        system = await settings_crud.get_or_create_system_settings(
            db, settings_crud.system_defaults(config)
        )
        return await dispatcher.send_test_email(system, recipient)

    @staticmethod
    @handle_database_exceptions("get_user_settings")
    async def get_user_settings(db: AsyncSession, principal: Principal) -> UserSettingsRead:
        user_settings = await settings_crud.get_or_create_user_settings(db, principal.user_id)
        return UserSettingsRead.model_validate(user_settings)

    @staticmethod
    @handle_database_exceptions("update_user_settings")
    async def update_user_settings(
        db: AsyncSession, principal: Principal, update: UserSettingsUpdate
    ) -> UserSettingsRead:
        """Apply a partial update to the caller's own preferences."""
        user_settings = await settings_crud.get_or_create_user_settings(db, principal.user_id)
        values = {
            field: value
            for field, value in update.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if values:
            user_settings = await settings_crud.update_user_settings(db, user_settings, values)
            logger.info(f"User settings updated for {principal.user_id}: {', '.join(sorted(values))}")
        return UserSettingsRead.model_validate(user_settings)
