"""
Authentication service.

Handles credential login, the demo administrator login and self-service
registration. Every path ends in a signed session token; nothing about the
session is stored server-side.
"""

import logging
import re
import secrets
from typing import List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.auth import LoginRequest, RegisterRequest
from core.config import SecuritySettings
from core.decorators import handle_database_exceptions
from core.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidCredentialsError,
    ValidationFailedError,
)
from core.security import (
    Principal,
    SigningKeyMissingError,
    create_access_token,
    hash_password,
    verify_password,
)
from crud import settings_crud, user_crud
from db.enums import UserRole
from db.models import utc_now

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo"
PASSWORD_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def password_problems(password: str) -> List[str]:
    """Unmet strength rules for ``password``; empty when it is acceptable."""
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if not PASSWORD_SPECIAL_CHARS.search(password):
        problems.append("Password must contain at least one special character")
    return problems


def _require_credentials(email: Optional[str], password: Optional[str]) -> str:
    """
    Check both fields are present and the email is well formed.

    Returns:
        The normalized (trimmed, lowercased) email
    """
    if not email or not email.strip() or not password:
        raise ValidationFailedError(message="Email and password are required")
    normalized = user_crud.normalize_email(email)
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationFailedError(message="Please enter a valid email address")
    return normalized


def _issue_token(principal: Principal, config: SecuritySettings) -> str:
    try:
        return create_access_token(principal, config)
    except SigningKeyMissingError as e:
        logger.error(f"Cannot issue session token: {e}")
        raise ConfigurationError("Authentication is not configured on the server")


class AuthService:
    """Login and registration."""

    @staticmethod
    def is_demo_login(request: LoginRequest, config: SecuritySettings) -> bool:
        """Demo login needs the flag, an enabled demo path and the exact demo password."""
        if not request.is_admin_login or not config.demo_login_enabled:
            return False
        if not config.demo_password or not request.password:
            return False
        return secrets.compare_digest(
            request.password.encode("utf-8"), config.demo_password.encode("utf-8")
        )

    @staticmethod
    @handle_database_exceptions("login")
    async def login(
        db: AsyncSession, request: LoginRequest, config: SecuritySettings
    ) -> Tuple[str, Principal]:
        """
        Authenticate and issue a session token.

        A flagged request carrying the demo password yields the demo
        administrator without any account lookup, and resets the demo
        notification preferences. Anything else goes through the account
        store.

        Raises:
            ValidationFailedError: Missing or malformed email/password
            InvalidCredentialsError: Unknown email, inactive account or wrong password
        """
        email = _require_credentials(request.email, request.password)

        if AuthService.is_demo_login(request, config):
            await settings_crud.reset_notification_settings(db, DEMO_USER_ID)
            principal = Principal(user_id=DEMO_USER_ID, email=email, role=UserRole.ADMIN)
            logger.info(f"Demo administrator login as {email}; demo notification settings reset")
            return _issue_token(principal, config), principal

        user = await user_crud.get_by_email(db, email)
        if user is None:
            logger.info(f"Login failed: unknown email {email}")
            raise InvalidCredentialsError()
        if not user.is_active:
            logger.info(f"Login failed: account {email} is deactivated")
            raise InvalidCredentialsError()
        if not verify_password(request.password, user.password_hash):
            logger.info(f"Login failed: wrong password for {email}")
            raise InvalidCredentialsError()

        await user_crud.touch_last_login(db, user, utc_now())
        principal = Principal(user_id=str(user.id), email=user.email, role=user.role)
        logger.info(f"User {user.email} logged in ({user.role.value})")
        return _issue_token(principal, config), principal

    @staticmethod
    @handle_database_exceptions("register")
    async def register(
        db: AsyncSession,
        request: RegisterRequest,
        config: SecuritySettings,
        admin_key: Optional[str] = None,
    ) -> Tuple[str, Principal]:
        """
        Create an account and log it in.

        An admin role is granted only while no administrator exists yet, or
        when ``admin_key`` matches the configured registration key; otherwise
        the account is created as a regular user.

        Raises:
            ValidationFailedError: Bad email or weak password
            ConflictError: Email already registered
        """
        email = _require_credentials(request.email, request.password)

        problems = password_problems(request.password)
        if problems:
            raise ValidationFailedError(
                [{"field": "password", "message": problem} for problem in problems],
                message="Password does not meet requirements",
            )

        if await user_crud.email_exists(db, email):
            raise ConflictError("User with this email already exists")

        role = UserRole.USER
        if request.role == UserRole.ADMIN:
            key_matches = bool(
                config.admin_registration_key
                and admin_key
                and secrets.compare_digest(
                    admin_key.encode("utf-8"), config.admin_registration_key.encode("utf-8")
                )
            )
            if key_matches or not await user_crud.admin_exists(db):
                role = UserRole.ADMIN
            else:
                logger.warning(f"Admin registration for {email} refused; registering as user")

        try:
            user = await user_crud.create_user(
                db,
                email=email,
                password_hash=hash_password(request.password, rounds=config.bcrypt_rounds),
                role=role,
            )
        except IntegrityError:
            # Concurrent registration of the same address
            await db.rollback()
            raise ConflictError("User with this email already exists")

        principal = Principal(user_id=str(user.id), email=user.email, role=user.role)
        logger.info(f"Registered {user.email} as {user.role.value}")
        return _issue_token(principal, config), principal
