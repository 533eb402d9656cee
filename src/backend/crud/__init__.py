"""
CRUD layer for database operations.

This package contains all data access logic isolated from business logic.

Pattern:
    await complaint_crud.get_complaint(db, complaint_id)
"""

from . import base_crud
from . import complaint_crud
from . import settings_crud
from . import user_crud

__all__ = ["base_crud", "complaint_crud", "settings_crud", "user_crud"]
