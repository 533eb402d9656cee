"""
Authentication, authorization and guard dependencies for FastAPI.

Principals are resolved from the session token only; no store lookup is
made, so a token stays valid until it expires.
"""

import logging
from typing import Optional

from fastapi import Depends, Request, Response

from core.config import SecuritySettings, Settings, get_settings
from core.database import get_session  # noqa: F401  (re-exported for endpoints)
from core.exceptions import ForbiddenError, RateLimitedError, UnauthenticatedError
from core.rate_limit import SubmissionRateLimiter
from core.security import (
    Principal,
    SecurityError,
    decode_token,
    principal_from_claims,
)

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Best-effort client address: X-Forwarded-For, X-Real-IP, then the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def extract_token(request: Request, config: SecuritySettings) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token

    return request.cookies.get(config.session_cookie_name) or None


def resolve_principal(request: Request, config: SecuritySettings) -> Optional[Principal]:
    """Resolve the caller, or None for a missing, malformed or expired token.

    Never raises.
    """
    token = extract_token(request, config)
    if not token:
        return None

    try:
        return principal_from_claims(decode_token(token, config))
    except SecurityError as e:
        logger.debug(f"Rejected session token: {e}")
        return None


async def get_current_principal(
    request: Request,
    app_settings: Settings = Depends(get_settings),
) -> Optional[Principal]:
    """Optional authentication: anonymous callers resolve to None."""
    return resolve_principal(request, app_settings.security)


async def require_authenticated(
    principal: Optional[Principal] = Depends(get_current_principal),
) -> Principal:
    if principal is None:
        raise UnauthenticatedError()
    return principal


async def require_admin(
    principal: Principal = Depends(require_authenticated),
) -> Principal:
    if not principal.is_admin:
        raise ForbiddenError()
    return principal


def get_submission_limiter(request: Request) -> SubmissionRateLimiter:
    return request.app.state.submission_limiter


async def enforce_submission_rate_limit(
    request: Request,
    response: Response,
    limiter: SubmissionRateLimiter = Depends(get_submission_limiter),
) -> None:
    """Count this submission against the caller's IP.

    Raises:
        RateLimitedError: When the window is exhausted
    """
    decision = await limiter.hit(get_client_ip(request))
    if not decision.allowed:
        raise RateLimitedError(
            retry_after=decision.retry_after,
            limit=decision.limit,
            reset_at=decision.reset_at,
        )
    response.headers.update(decision.headers)


def get_notification_dispatcher(request: Request):
    """The application's notification dispatcher (see ``app.factory``)."""
    return request.app.state.notification_dispatcher
