"""
Database models using SQLModel.

Tables:
- users: registered principals
- complaints: the ticket record and its lifecycle status
- user_settings: per-user notification preferences and UI preferences
- system_settings: singleton SMTP/application configuration
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlmodel import Field, SQLModel

from db.enums import (
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    SortOrder,
    Theme,
    UserRole,
)

SYSTEM_SETTINGS_ID = "system_settings"
ANONYMOUS_EMAIL = "anonymous@example.com"


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-naive) for database storage.

    The API layer appends the 'Z' suffix when serializing.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_column(enum_cls, length: int, **kwargs) -> Column:
    """String-backed enum column that stores and returns member values."""
    return Column(
        SAEnum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
            length=length,
        ),
        **kwargs,
    )


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


class User(TableModel, table=True):
    """Registered principal. Deactivated, never hard-deleted."""

    __tablename__ = "users"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    email: str = Field(
        max_length=255,
        sa_column=Column(String(255), nullable=False, unique=True, index=True),
        description="Login email, stored lowercased",
    )
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="bcrypt hash of the password",
    )
    role: UserRole = Field(
        default=UserRole.USER,
        sa_column=_enum_column(UserRole, 10, nullable=False),
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False),
    )
    last_login: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )


class Complaint(TableModel, table=True):
    """A user-submitted ticket tracked through its status lifecycle.

    Only ``status`` (and with it ``last_modified``) changes after creation.
    """

    __tablename__ = "complaints"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    title: str = Field(
        max_length=100,
        sa_column=Column(String(100), nullable=False),
    )
    description: str = Field(
        max_length=1000,
        sa_column=Column(Text, nullable=False),
    )
    category: ComplaintCategory = Field(
        sa_column=_enum_column(ComplaintCategory, 20, nullable=False),
    )
    priority: ComplaintPriority = Field(
        sa_column=_enum_column(ComplaintPriority, 10, nullable=False),
    )
    status: ComplaintStatus = Field(
        default=ComplaintStatus.PENDING,
        sa_column=_enum_column(ComplaintStatus, 20, nullable=False),
    )
    user_id: Optional[str] = Field(
        default=None,
        max_length=64,
        sa_column=Column(String(64), nullable=True),
        description="Submitting user's id; empty for anonymous submissions",
    )
    user_email: str = Field(
        default=ANONYMOUS_EMAIL,
        max_length=255,
        sa_column=Column(String(255), nullable=False),
    )
    date_submitted: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    last_modified: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )

    __table_args__ = (
        Index("ix_complaints_status", "status"),
        Index("ix_complaints_priority", "priority"),
        Index("ix_complaints_category", "category"),
        Index("ix_complaints_user_email", "user_email"),
        Index("ix_complaints_date_submitted", "date_submitted"),
    )


class UserSettings(TableModel, table=True):
    """Per-user notification and display preferences."""

    __tablename__ = "user_settings"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid, primary_key=True),
    )
    user_id: str = Field(
        max_length=64,
        sa_column=Column(String(64), nullable=False, unique=True, index=True),
        description="Owning user's id ('demo' for the demo principal)",
    )
    notification_email: str = Field(
        default="",
        max_length=255,
        sa_column=Column(String(255), nullable=False),
        description="Delivery address override; empty means the account email",
    )
    receive_new_complaints: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False),
    )
    receive_status_updates: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False),
    )
    theme: Theme = Field(
        default=Theme.SYSTEM,
        sa_column=_enum_column(Theme, 10, nullable=False),
    )
    items_per_page: int = Field(
        default=10,
        sa_column=Column(Integer, nullable=False),
    )
    default_complaint_sort: str = Field(
        default="dateSubmitted",
        max_length=32,
        sa_column=Column(String(32), nullable=False),
    )
    default_sort_order: SortOrder = Field(
        default=SortOrder.DESC,
        sa_column=_enum_column(SortOrder, 4, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )


class SystemSettings(TableModel, table=True):
    """Singleton SMTP and application configuration with encrypted credentials."""

    __tablename__ = "system_settings"

    id: str = Field(
        default=SYSTEM_SETTINGS_ID,
        sa_column=Column(String(32), primary_key=True),
    )
    smtp_host: str = Field(
        default="smtp.gmail.com",
        sa_column=Column(String(255), nullable=False),
    )
    smtp_port: int = Field(
        default=587,
        sa_column=Column(Integer, nullable=False),
        description="SMTP port (465 for SSL, 587 for STARTTLS)",
    )
    smtp_user: str = Field(
        default="",
        sa_column=Column(String(255), nullable=False),
    )
    encrypted_smtp_pass: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Fernet-encrypted SMTP password",
    )
    admin_email: str = Field(
        default="",
        sa_column=Column(String(255), nullable=False),
        description="Address that receives complaint notifications",
    )
    base_url: str = Field(
        default="http://localhost:3000",
        sa_column=Column(String(255), nullable=False),
        description="Public URL used to build links in emails",
    )
    system_name: str = Field(
        default="Compass Complaint Center",
        sa_column=Column(String(100), nullable=False),
    )
    updated_by: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    )

    @property
    def is_configured(self) -> bool:
        return bool(
            self.smtp_host
            and self.smtp_user
            and self.encrypted_smtp_pass
            and self.admin_email
        )
