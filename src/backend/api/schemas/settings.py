"""System and user settings schemas."""
from datetime import datetime
from typing import Literal, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import EmailStr, Field, field_validator

from core.schema_base import HTTPSchemaModel
from db.enums import SortOrder, Theme

MASKED_SECRET = "••••••••"

ComplaintSortField = Literal["dateSubmitted", "priority", "status", "title"]


def _optional_email(value: Optional[str]) -> Optional[str]:
    """Allow '' (clear the field) or a syntactically valid address."""
    if value is None:
        return None
    value = value.strip().lower()
    if not value:
        return value
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Please enter a valid email address")
    return value


class SystemSettingsRead(HTTPSchemaModel):
    """System settings as shown to administrators. The password is masked."""

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str = ""
    admin_email: str
    is_configured: bool
    base_url: str
    system_name: str
    updated_at: Optional[datetime] = None


class SystemSettingsUpdate(HTTPSchemaModel):
    """Partial update. A ``smtpPass`` equal to the mask keeps the stored password."""

    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    admin_email: Optional[str] = None
    base_url: Optional[str] = None
    system_name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("smtp_port")
    @classmethod
    def validate_smtp_port(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and (v < 1 or v > 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("smtp_host", "smtp_user", "base_url", "system_name")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else None

    @field_validator("admin_email")
    @classmethod
    def validate_admin_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)


class EmailTestRequest(HTTPSchemaModel):
    recipient: EmailStr


class EmailTestResult(HTTPSchemaModel):
    success: bool
    message: str
    details: Optional[str] = None


class UserSettingsRead(HTTPSchemaModel):
    notification_email: str
    receive_new_complaints: bool
    receive_status_updates: bool
    theme: Theme
    items_per_page: int
    default_complaint_sort: str
    default_sort_order: SortOrder


class UserSettingsUpdate(HTTPSchemaModel):
    notification_email: Optional[str] = None
    receive_new_complaints: Optional[bool] = None
    receive_status_updates: Optional[bool] = None
    theme: Optional[Theme] = None
    items_per_page: Optional[int] = Field(default=None, ge=5, le=100)
    default_complaint_sort: Optional[ComplaintSortField] = None
    default_sort_order: Optional[SortOrder] = None

    @field_validator("notification_email")
    @classmethod
    def validate_notification_email(cls, v: Optional[str]) -> Optional[str]:
        return _optional_email(v)
