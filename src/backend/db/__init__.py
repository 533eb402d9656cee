"""
Database models using SQLModel.

Re-exports the table models and enums so callers can write
``from db import Complaint, ComplaintStatus``.
"""
from .enums import (
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    NotificationKind,
    SortOrder,
    Theme,
    UserRole,
)
from .models import (
    ANONYMOUS_EMAIL,
    SYSTEM_SETTINGS_ID,
    Complaint,
    SystemSettings,
    TableModel,
    User,
    UserSettings,
    utc_now,
)

__all__ = [
    "ANONYMOUS_EMAIL",
    "SYSTEM_SETTINGS_ID",
    "Complaint",
    "ComplaintCategory",
    "ComplaintPriority",
    "ComplaintStatus",
    "NotificationKind",
    "SortOrder",
    "SystemSettings",
    "TableModel",
    "Theme",
    "User",
    "UserRole",
    "UserSettings",
    "utc_now",
]
