"""
Complaint API endpoints.

Submission and read access are open to anonymous callers; status changes,
deletion and statistics require an administrator.

**Key Features:**
- Per-IP submission throttle (5 per 15 minutes by default)
- Filtering by status, priority, category and submitter email
- Pagination with a configurable default and maximum page size
- Email notifications on submission and on status change
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import (
    ComplaintCreate,
    ComplaintDeleted,
    ComplaintListData,
    ComplaintRead,
    ComplaintStats,
    ComplaintStatusUpdate,
)
from api.services.complaint_service import ComplaintLifecycleEngine
from core.config import Settings, get_settings
from core.dependencies import (
    enforce_submission_rate_limit,
    get_current_principal,
    get_notification_dispatcher,
    get_session,
    require_admin,
)
from core.schema_base import ApiResponse
from core.security import Principal
from db.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus, SortOrder

logger = logging.getLogger(__name__)

router = APIRouter()


def get_complaint_engine(
    request: Request,
    app_settings: Settings = Depends(get_settings),
) -> ComplaintLifecycleEngine:
    return ComplaintLifecycleEngine(
        dispatcher=get_notification_dispatcher(request),
        pagination=app_settings.pagination,
    )


@router.post(
    "",
    response_model=ApiResponse[ComplaintRead],
    status_code=status.HTTP_201_CREATED,
    summary="Submit a complaint",
    dependencies=[Depends(enforce_submission_rate_limit)],
)
async def create_complaint(
    form: ComplaintCreate,
    db: AsyncSession = Depends(get_session),
    principal: Optional[Principal] = Depends(get_current_principal),
    engine: ComplaintLifecycleEngine = Depends(get_complaint_engine),
):
    """
    Submit a new complaint.

    Args:
        form: title, description, category (Product/Service/Support) and
            priority (Low/Medium/High)

    Returns:
        ApiResponse[ComplaintRead]: The stored complaint with status Pending

    **Errors:**
    - 400: One or more fields invalid (``details`` lists each field)
    - 429: Submission limit reached for this client (see ``Retry-After``)
    - 503: Database unavailable

    **Permissions:** Anyone. Logged-in submitters are recorded by id and email.
    """
    complaint = await engine.create(db, form, principal)
    return ApiResponse(
        data=ComplaintRead.model_validate(complaint),
        message="Complaint submitted successfully",
    )


@router.get(
    "",
    response_model=ApiResponse[ComplaintListData],
    summary="List complaints",
)
async def list_complaints(
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    priority: Optional[ComplaintPriority] = Query(None),
    category: Optional[ComplaintCategory] = Query(None),
    user_email: Optional[str] = Query(None, alias="userEmail"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort_by: str = Query("dateSubmitted", alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    db: AsyncSession = Depends(get_session),
    engine: ComplaintLifecycleEngine = Depends(get_complaint_engine),
):
    """
    List complaints, newest first by default.

    Args:
        status_filter / priority / category: Exact-match filters
        user_email: Submitter email filter (case-insensitive)
        page: Page number (1-indexed)
        limit: Page size, capped at the configured maximum
        sort_by: dateSubmitted, lastModified, title, status, priority or category
        sort_order: asc or desc

    Returns:
        ApiResponse[ComplaintListData]: complaints and ``{page, limit, total, pages}``
    """
    complaints, pagination = await engine.list_complaints(
        db,
        status=status_filter,
        priority=priority,
        category=category,
        user_email=user_email,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ApiResponse(
        data=ComplaintListData(
            complaints=[ComplaintRead.model_validate(c) for c in complaints],
            pagination=pagination,
        )
    )


@router.get(
    "/stats",
    response_model=ApiResponse[ComplaintStats],
    summary="Complaint statistics",
)
async def complaint_stats(
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
    engine: ComplaintLifecycleEngine = Depends(get_complaint_engine),
):
    """
    Counts by status, priority and category, the total, and the number
    submitted in the last 7 days.

    **Permissions:** Admin only
    """
    return ApiResponse(data=await engine.stats(db, principal))


@router.get(
    "/{complaint_id}",
    response_model=ApiResponse[ComplaintRead],
    summary="Get a complaint",
)
async def get_complaint(
    complaint_id: str,
    db: AsyncSession = Depends(get_session),
    engine: ComplaintLifecycleEngine = Depends(get_complaint_engine),
):
    complaint = await engine.get(db, complaint_id)
    return ApiResponse(data=ComplaintRead.model_validate(complaint))


@router.patch(
    "/{complaint_id}",
    response_model=ApiResponse[ComplaintRead],
    summary="Update complaint status",
)
async def update_complaint_status(
    complaint_id: str,
    body: ComplaintStatusUpdate,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
    engine: ComplaintLifecycleEngine = Depends(get_complaint_engine),
):
    """
    Change a complaint's status.

    Any status may follow any other. A notification email is sent only when
    the status actually changes.

    **Permissions:** Admin only
    """
    complaint = await engine.update_status(db, complaint_id, body.status, principal)
    return ApiResponse(
        data=ComplaintRead.model_validate(complaint),
        message="Complaint updated successfully",
    )


@router.delete(
    "/{complaint_id}",
    response_model=ApiResponse[ComplaintDeleted],
    summary="Delete a complaint",
)
async def delete_complaint(
    complaint_id: str,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
    engine: ComplaintLifecycleEngine = Depends(get_complaint_engine),
):
    """
    Permanently delete a complaint. No notification is sent.

    **Permissions:** Admin only
    """
    deleted_id = await engine.delete(db, complaint_id, principal)
    return ApiResponse(
        data=ComplaintDeleted(deleted_id=deleted_id),
        message="Complaint deleted successfully",
    )
