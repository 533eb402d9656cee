"""Complaint schemas."""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import Field

from core.schema_base import HTTPSchemaModel
from db.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus


class ComplaintCreate(HTTPSchemaModel):
    """Submission form.

    Fields are taken as raw strings; the lifecycle engine validates them so
    every problem is reported together, keyed by field.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None


class ComplaintStatusUpdate(HTTPSchemaModel):
    status: Optional[str] = None


class ComplaintRead(HTTPSchemaModel):
    id: UUID
    title: str
    description: str
    category: ComplaintCategory
    priority: ComplaintPriority
    status: ComplaintStatus
    user_id: Optional[str] = None
    user_email: str
    date_submitted: datetime
    last_modified: datetime


class Pagination(HTTPSchemaModel):
    page: int
    limit: int
    total: int
    pages: int


class ComplaintListData(HTTPSchemaModel):
    complaints: List[ComplaintRead]
    pagination: Pagination


class ComplaintDeleted(HTTPSchemaModel):
    deleted_id: UUID


class ComplaintStats(HTTPSchemaModel):
    """Dashboard counters. Every enum value is present, zero when unused."""

    total: int
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
    recent_complaints: int = 0
