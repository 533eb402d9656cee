"""
Security utilities for session tokens and password hashing.

Session tokens are stateless JWTs carrying ``{userId, email, role}``. Their
validity is purely a function of signature and expiry; nothing is stored
server-side, so a token cannot be revoked before it expires.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from core.config import SecuritySettings
from db.enums import UserRole


class SecurityError(Exception):
    """Base exception for security-related errors."""

    pass


class TokenExpiredError(SecurityError):
    """Raised when a token has expired."""

    pass


class TokenInvalidError(SecurityError):
    """Raised when a token is invalid."""

    pass


class SigningKeyMissingError(SecurityError):
    """Raised when no signing secret is configured."""

    pass


@dataclass(frozen=True)
class Principal:
    """The resolved identity and role of a caller."""

    user_id: str
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_claims(self) -> Dict[str, str]:
        return {"userId": self.user_id, "email": self.email, "role": self.role.value}


def _signing_key(config: SecuritySettings) -> str:
    if not config.secret_key:
        raise SigningKeyMissingError("SECURITY_SECRET_KEY is not configured")
    return config.secret_key


def create_access_token(
    principal: Principal,
    config: SecuritySettings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed session token for the given principal.

    Args:
        principal: Identity to embed in the token
        config: Security settings (secret, algorithm, issuer, audience)
        expires_delta: Custom lifetime (default: ``access_token_expire_days``)

    Returns:
        Encoded JWT string

    Raises:
        SigningKeyMissingError: If no secret is configured
        SecurityError: If token creation fails
    """
    key = _signing_key(config)
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=config.access_token_expire_days))

    payload = {
        **principal.to_claims(),
        "sub": principal.user_id,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": str(uuid4()),
        "iss": config.jwt_issuer,
        "aud": config.jwt_audience,
    }

    try:
        return jwt.encode(payload, key, algorithm=config.algorithm)
    except Exception as e:
        raise SecurityError(f"Failed to create access token: {str(e)}")


def decode_token(token: str, config: SecuritySettings) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed or badly signed
        SigningKeyMissingError: If no secret is configured
    """
    key = _signing_key(config)
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[config.algorithm],
            audience=config.jwt_audience,
            issuer=config.jwt_issuer,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {str(e)}")


def principal_from_claims(payload: Dict[str, Any]) -> Principal:
    """Build a principal from decoded claims.

    Raises:
        TokenInvalidError: If a required claim is missing or the role is unknown
    """
    user_id = payload.get("userId") or payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")
    if not user_id or not email or not role:
        raise TokenInvalidError("Token is missing identity claims")
    try:
        return Principal(user_id=str(user_id), email=str(email), role=UserRole(role))
    except ValueError:
        raise TokenInvalidError(f"Unknown role in token: {role}")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash.

    bcrypt.checkpw compares digests in constant time.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except (ValueError, TypeError):
        return False
