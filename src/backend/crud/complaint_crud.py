"""CRUD operations for complaints."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crud import base_crud
from db.enums import ComplaintStatus, SortOrder
from db.models import Complaint

# API sort keys mapped to columns; anything else falls back to dateSubmitted
SORTABLE_COLUMNS = {
    "dateSubmitted": Complaint.date_submitted,
    "lastModified": Complaint.last_modified,
    "title": Complaint.title,
    "status": Complaint.status,
    "priority": Complaint.priority,
    "category": Complaint.category,
}
DEFAULT_SORT = "dateSubmitted"


async def get_complaint(db: AsyncSession, complaint_id: UUID) -> Optional[Complaint]:
    return await base_crud.find_by_id(db, Complaint, complaint_id)


async def create_complaint(db: AsyncSession, values: Dict[str, Any]) -> Complaint:
    return await base_crud.create(db, Complaint, obj_in=values)


async def list_complaints(
    db: AsyncSession,
    *,
    filters: Dict[str, Any],
    page: int,
    limit: int,
    sort_by: str = DEFAULT_SORT,
    sort_order: SortOrder = SortOrder.DESC,
) -> Tuple[List[Complaint], int]:
    """
    Page through complaints.

    Args:
        db: Database session
        filters: Exact-match filters keyed by column name (None values ignored)
        page: Page number (1-indexed)
        limit: Page size
        sort_by: API sort key (see SORTABLE_COLUMNS)
        sort_order: asc or desc

    Returns:
        Tuple of (complaints on this page, total matching)
    """
    column = SORTABLE_COLUMNS.get(sort_by, SORTABLE_COLUMNS[DEFAULT_SORT])
    primary = column.asc() if sort_order == SortOrder.ASC else column.desc()
    # Stable ordering across pages when the sort key ties
    order_by = [primary, Complaint.id.asc()]

    return await base_crud.find_paginated(
        db,
        Complaint,
        page=page,
        per_page=limit,
        filters=filters,
        order_by=order_by,
    )


async def set_status(
    db: AsyncSession,
    complaint: Complaint,
    status: ComplaintStatus,
    modified_at: datetime,
) -> Complaint:
    """Write status and last_modified together in a single UPDATE."""
    return await base_crud.update(
        db,
        complaint,
        obj_in={
            "status": status,
            "last_modified": modified_at,
            "updated_at": modified_at,
        },
    )


async def delete_complaint(db: AsyncSession, complaint_id: UUID) -> bool:
    return await base_crud.delete(db, Complaint, id_value=complaint_id)


async def count_grouped(db: AsyncSession, column) -> Dict[Any, int]:
    """Count complaints per distinct value of ``column``."""
    stmt = select(column, func.count()).select_from(Complaint).group_by(column)
    result = await db.execute(stmt)
    return {value: total for value, total in result.all()}


async def count_total(db: AsyncSession) -> int:
    return await base_crud.count(db, Complaint)


async def count_submitted_since(db: AsyncSession, since: datetime) -> int:
    stmt = (
        select(func.count())
        .select_from(Complaint)
        .where(Complaint.date_submitted >= since)
    )
    result = await db.execute(stmt)
    return result.scalar_one()
