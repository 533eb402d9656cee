"""
Application factory for FastAPI.

This module provides the create_app() function that creates and configures
the FastAPI application instance.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.services.notification_service import NotificationDispatcher
from api.v1 import api_router
from app.routes import health_router
from core.config import Settings, get_settings
from core.database import get_background_session
from core.exceptions import register_exception_handlers
from core.lifespan import lifespan
from core.middleware import CorrelationIdMiddleware, SecurityHeadersMiddleware
from core.rate_limit import SubmissionRateLimiter, limiter


def create_app(
    app_settings: Optional[Settings] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    submission_limiter: Optional[SubmissionRateLimiter] = None,
) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application with all necessary
    middleware, routes and shared state. The dispatcher and submission
    limiter can be injected (tests pass their own).

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app_settings = app_settings or get_settings()

    app = FastAPI(
        title=app_settings.api.app_name,
        version=app_settings.api.app_version,
        description="Complaint submission and ticket management API",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Shared state
    app.state.limiter = limiter
    if submission_limiter is None:
        submission_limiter = SubmissionRateLimiter.from_settings(app_settings.rate_limit)
    if dispatcher is None:
        dispatcher = NotificationDispatcher(
            session_factory=get_background_session,
            config=app_settings,
        )
    app.state.submission_limiter = submission_limiter
    app.state.notification_dispatcher = dispatcher

    register_exception_handlers(app)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors.origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With", "X-Admin-Key", "X-Correlation-ID"],
        expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "X-Correlation-ID"],
    )

    # Security headers middleware (added after CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    # Outermost, so every log line for the request carries the id
    app.add_middleware(CorrelationIdMiddleware)

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router, prefix=app_settings.api.api_v1_prefix)

    return app
