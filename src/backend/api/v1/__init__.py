"""
API v1 routes.

Endpoints are organized into subdirectories: auth, setting, support.
"""

from fastapi import APIRouter

from .endpoints.auth import auth
from .endpoints.setting import system_settings, user_settings
from .endpoints.support import complaints

api_router = APIRouter()

# Authentication
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Complaints
api_router.include_router(complaints.router, prefix="/complaints", tags=["complaints"])

# Settings
api_router.include_router(
    system_settings.router, prefix="/settings/system", tags=["settings"]
)
api_router.include_router(
    user_settings.router, prefix="/settings/user", tags=["settings"]
)

__all__ = ["api_router"]
