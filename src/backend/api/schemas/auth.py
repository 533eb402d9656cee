"""Authentication schemas."""
from typing import Optional

from core.schema_base import HTTPSchemaModel
from db.enums import UserRole


class LoginRequest(HTTPSchemaModel):
    """Login body. ``isAdminLogin`` selects the fixed-password demo path."""

    email: Optional[str] = None
    password: Optional[str] = None
    is_admin_login: bool = False


class RegisterRequest(HTTPSchemaModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: UserRole = UserRole.USER


class PrincipalRead(HTTPSchemaModel):
    id: str
    email: str
    role: UserRole


class LoginData(HTTPSchemaModel):
    token: str
    user: PrincipalRead
