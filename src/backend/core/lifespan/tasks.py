"""
Lifespan startup and shutdown task functions.

This module contains individual task functions for application startup
and shutdown sequences. Each function handles a specific responsibility.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError


async def initialize_logging(settings, log_config):
    """Setup logging configuration."""
    from core.logging_config import setup_logging

    logger = logging.getLogger("main")
    setup_logging(log_config)

    logger.info(
        f"Starting {settings.api.app_name} v{settings.api.app_version} "
        f"({settings.api.environment})"
    )
    if not settings.security.secret_key:
        logger.error("SECURITY_SECRET_KEY is not set: logins will fail until it is configured")


async def log_cors_configuration(settings, logger):
    """Log CORS configuration for debugging."""
    logger.info(f"CORS Allowed Origins: {settings.cors.origins}")


async def initialize_database():
    """Initialize database tables."""
    from core.database import init_db

    logger = logging.getLogger("main")
    await init_db()
    logger.info("Database initialized")


async def setup_default_data(settings):
    """Setup default database data (system settings row)."""
    from core.database import get_background_session
    from db.setup import setup_database_default_data

    logger = logging.getLogger("main")
    logger.info("Setting up default database data...")
    try:
        async with get_background_session() as db:
            await setup_database_default_data(db, settings)
        logger.info("Default data setup completed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error during default data setup: {e}")


async def drain_notifications(app, settings):
    """Wait (bounded) for notification emails still being sent."""
    logger = logging.getLogger("main")
    dispatcher = getattr(app.state, "notification_dispatcher", None)
    if dispatcher is None:
        return
    await dispatcher.drain(settings.email.shutdown_drain_timeout)
    logger.info("Notification dispatcher drained")


async def shutdown_database():
    """Close database connections."""
    from core.database import close_db

    logger = logging.getLogger("main")
    await close_db()
    logger.info("Database connections closed")


async def shutdown_logging():
    """Stop the logging queue listener."""
    from core.logging_config import stop_queue_listener

    logging.getLogger("main").info("Stopping logging queue listener")
    stop_queue_listener()
