"""
Application lifespan manager.

This module provides the lifespan context manager that handles
startup and shutdown events for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.config import get_settings
from core.logging_config import LogConfig
from . import tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    settings = get_settings()

    # Setup logging
    log_config = LogConfig(**settings.logging.log_config, sql_echo=settings.database.echo)
    await tasks.initialize_logging(settings, log_config)

    logger = logging.getLogger("main")

    # Log CORS configuration for debugging
    await tasks.log_cors_configuration(settings, logger)

    # Initialize database
    await tasks.initialize_database()

    # Setup default data (system settings row)
    await tasks.setup_default_data(settings)

    yield

    # Shutdown
    logger.info("Shutting down Compass Complaint Center API...")

    # Let in-flight notification emails finish
    await tasks.drain_notifications(app, settings)

    # Close database connections
    await tasks.shutdown_database()

    # Stop logging queue listener last so shutdown messages are flushed
    await tasks.shutdown_logging()
