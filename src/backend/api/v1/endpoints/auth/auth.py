"""
Authentication endpoints.

This module provides FastAPI endpoints for:
- Email/password login (and the demo administrator login)
- Self-service registration
- Resolving the current principal
- Logout

Login and registration return a JWT (7-day expiry) in the body and also set
it as an HttpOnly ``token`` cookie. Sessions are not stored server-side.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.auth import LoginData, LoginRequest, PrincipalRead, RegisterRequest
from api.services.auth_service import AuthService
from core.config import Settings, get_settings, settings
from core.dependencies import get_session, require_authenticated
from core.rate_limit import limiter
from core.schema_base import ApiResponse
from core.security import Principal

logger = logging.getLogger(__name__)

router = APIRouter()


def _principal_read(principal: Principal) -> PrincipalRead:
    return PrincipalRead(id=principal.user_id, email=principal.email, role=principal.role)


def set_session_cookie(response: Response, token: str, app_settings: Settings) -> None:
    """HttpOnly, SameSite cookie; Secure only in production."""
    security = app_settings.security
    response.set_cookie(
        key=security.session_cookie_name,
        value=token,
        max_age=security.access_token_max_age,
        path="/",
        httponly=True,
        secure=app_settings.api.is_production and security.session_cookie_secure,
        samesite=security.session_cookie_samesite,
    )


def clear_session_cookie(response: Response, app_settings: Settings) -> None:
    security = app_settings.security
    response.delete_cookie(
        key=security.session_cookie_name,
        path="/",
        httponly=True,
        secure=app_settings.api.is_production and security.session_cookie_secure,
        samesite=security.session_cookie_samesite,
    )


@router.post("/login", response_model=ApiResponse[LoginData])
@limiter.limit(settings.rate_limit.login)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_settings),
):
    """Email/password login.

    With ``isAdminLogin`` set and the configured demo password, logs in as
    the demo administrator (id ``demo``) and resets its notification
    preferences.

    Returns:
        ApiResponse[LoginData]: token and ``{id, email, role}``

    Raises:
        400: Missing or malformed email/password
        401: Invalid email or password (never says which)
        429: Too many login attempts from this client
    """
    token, principal = await AuthService.login(db, credentials, app_settings.security)
    set_session_cookie(response, token, app_settings)
    return ApiResponse(
        data=LoginData(token=token, user=_principal_read(principal)),
        message="Login successful",
    )


@router.post(
    "/register",
    response_model=ApiResponse[LoginData],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    response: Response,
    body: RegisterRequest,
    admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
    db: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_settings),
):
    """Create an account and log it in.

    Requesting ``role: admin`` succeeds only while no administrator exists,
    or with a matching ``X-Admin-Key`` header; otherwise a regular user is
    created.

    Raises:
        400: Bad email or password that fails the strength rules
        409: Email already registered
    """
    token, principal = await AuthService.register(
        db, body, app_settings.security, admin_key=admin_key
    )
    set_session_cookie(response, token, app_settings)
    return ApiResponse(
        data=LoginData(token=token, user=_principal_read(principal)),
        message="User registered successfully",
    )


@router.get("/me", response_model=ApiResponse[PrincipalRead])
async def me(principal: Principal = Depends(require_authenticated)):
    return ApiResponse(data=_principal_read(principal))


@router.post("/logout", response_model=ApiResponse[None])
async def logout(response: Response, app_settings: Settings = Depends(get_settings)):
    """Clear the session cookie. The token itself stays valid until it expires."""
    clear_session_cookie(response, app_settings)
    return ApiResponse(message="Logged out successfully")
