"""
Enums for database models.

These replace lookup tables for values that:
- Have a fixed, small set of members
- Are never modified at runtime
- Travel over the wire as their display value
"""
from enum import Enum


class UserRole(str, Enum):
    """Role of an authenticated principal."""
    USER = "user"
    ADMIN = "admin"


class ComplaintStatus(str, Enum):
    """
    Complaint lifecycle status.

    Any status may move to any other; only membership is validated.
    """
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class ComplaintCategory(str, Enum):
    PRODUCT = "Product"
    SERVICE = "Service"
    SUPPORT = "Support"


class ComplaintPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class NotificationKind(str, Enum):
    """Lifecycle events that trigger an email."""
    NEW_COMPLAINT = "new_complaint"
    STATUS_CHANGED = "status_changed"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
