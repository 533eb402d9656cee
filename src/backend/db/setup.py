"""
Database setup module for initializing default values.

Seeds the singleton system settings row so administrators always have a
configuration to edit. Existing values are never overwritten.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from crud import settings_crud

logger = logging.getLogger(__name__)


class DatabaseSetup:
    """Handles database initialization and default data setup."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def create_default_system_settings(self, db: AsyncSession) -> bool:
        """
        Create the system settings row with defaults if it is missing.

        Returns:
            True if the row was created, False if it already existed
        """
        existing = await settings_crud.get_system_settings(db)
        if existing:
            logger.info("System settings already exist, skipping")
            return False

        await settings_crud.get_or_create_system_settings(
            db, settings_crud.system_defaults(self.settings)
        )
        logger.info("Created default system settings")
        return True

    async def run(self, db: AsyncSession) -> None:
        await self.create_default_system_settings(db)


async def setup_database_default_data(db: AsyncSession, settings: Settings) -> None:
    """Seed all default data."""
    await DatabaseSetup(settings).run(db)
