"""
Complaint lifecycle engine.

Owns every state change of a complaint:
- create: validate, sanitize, persist as Pending, announce NEW_COMPLAINT
- update_status: admin only; announce STATUS_CHANGED when the status moved
- delete: admin only, hard delete, silent

Role checks are repeated here even though the endpoints gate on them, so the
engine is safe to call from any entry point.
"""

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.complaint import ComplaintCreate, ComplaintStats, Pagination
from api.services.notification_service import (
    ComplaintSnapshot,
    NotificationDispatcher,
    NotificationEvent,
)
from core.config import PaginationSettings
from core.database import ping_database
from core.decorators import handle_database_exceptions
from core.exceptions import (
    ForbiddenError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthenticatedError,
    ValidationFailedError,
)
from core.sanitizer import sanitize_text
from core.security import Principal
from crud import complaint_crud
from db.enums import (
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    NotificationKind,
    SortOrder,
)
from db.models import ANONYMOUS_EMAIL, Complaint, utc_now

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
RECENT_WINDOW = timedelta(days=7)


def _choices(enum_cls: Type) -> str:
    return ", ".join(member.value for member in enum_cls)


def _validate_text(
    errors: List[Dict[str, str]], field: str, label: str, raw: Optional[str], max_length: int
) -> str:
    """Sanitize, then check presence and length of what would be stored."""
    cleaned = sanitize_text(raw)
    if not cleaned:
        errors.append({"field": field, "message": f"{label} is required"})
        return ""
    if len(cleaned) > max_length:
        errors.append(
            {"field": field, "message": f"{label} cannot exceed {max_length} characters"}
        )
        return ""
    return cleaned


def _validate_choice(
    errors: List[Dict[str, str]], field: str, label: str, raw: Optional[str], enum_cls: Type
):
    value = (raw or "").strip()
    if not value:
        errors.append({"field": field, "message": f"{label} is required"})
        return None
    try:
        return enum_cls(value)
    except ValueError:
        errors.append(
            {"field": field, "message": f"{label} must be one of: {_choices(enum_cls)}"}
        )
        return None


def parse_complaint_id(raw: str) -> UUID:
    """
    Raises:
        ValidationFailedError: If ``raw`` is not a UUID
    """
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationFailedError(message="Invalid complaint ID format")


def _require_admin(principal: Optional[Principal]) -> Principal:
    if principal is None:
        raise UnauthenticatedError()
    if not principal.is_admin:
        raise ForbiddenError()
    return principal


class ComplaintLifecycleEngine:
    """Complaint operations plus the notifications they trigger."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        pagination: Optional[PaginationSettings] = None,
    ):
        self.dispatcher = dispatcher
        self.pagination = pagination or PaginationSettings()

    # ==================== Commands ====================

    @handle_database_exceptions("create_complaint")
    async def create(
        self,
        db: AsyncSession,
        form: ComplaintCreate,
        submitter: Optional[Principal] = None,
    ) -> Complaint:
        """
        Validate, sanitize and store a new complaint.

        Anyone may submit; anonymous submissions are recorded under
        ``anonymous@example.com``.

        Raises:
            ValidationFailedError: With one entry per invalid field
            ServiceUnavailableError: If the database liveness probe fails
        """
        errors: List[Dict[str, str]] = []
        title = _validate_text(errors, "title", "Title", form.title, TITLE_MAX_LENGTH)
        description = _validate_text(
            errors, "description", "Description", form.description, DESCRIPTION_MAX_LENGTH
        )
        category = _validate_choice(
            errors, "category", "Category", form.category, ComplaintCategory
        )
        priority = _validate_choice(
            errors, "priority", "Priority", form.priority, ComplaintPriority
        )
        if errors:
            raise ValidationFailedError(errors)

        if not await ping_database(db):
            raise ServiceUnavailableError()

        now = utc_now()
        complaint = await complaint_crud.create_complaint(
            db,
            {
                "title": title,
                "description": description,
                "category": category,
                "priority": priority,
                "status": ComplaintStatus.PENDING,
                "user_id": submitter.user_id if submitter else None,
                "user_email": submitter.email if submitter else ANONYMOUS_EMAIL,
                "date_submitted": now,
                "last_modified": now,
            },
        )
        logger.info(
            f"Complaint {complaint.id} submitted by {complaint.user_email} "
            f"({category.value}/{priority.value})"
        )

        self.dispatcher.submit(
            NotificationEvent(
                kind=NotificationKind.NEW_COMPLAINT,
                complaint=ComplaintSnapshot.from_model(complaint),
            )
        )
        return complaint

    @handle_database_exceptions("update_complaint_status")
    async def update_status(
        self,
        db: AsyncSession,
        complaint_id: str,
        requested_status: Optional[str],
        caller: Optional[Principal],
    ) -> Complaint:
        """
        Move a complaint to ``requested_status``.

        Any status may follow any other. The previous status is captured
        before the write; a notification is emitted only when it differs.

        Raises:
            UnauthenticatedError / ForbiddenError: Caller is not an admin
            ValidationFailedError: Unknown status or malformed id
            NotFoundError: No complaint with that id
        """
        admin = _require_admin(caller)
        target_id = parse_complaint_id(complaint_id)

        if not requested_status:
            raise ValidationFailedError(
                [{"field": "status", "message": "Status is required"}],
                message="Invalid status",
            )
        try:
            new_status = ComplaintStatus(requested_status)
        except ValueError:
            raise ValidationFailedError(
                [
                    {
                        "field": "status",
                        "message": f"Status must be one of: {_choices(ComplaintStatus)}",
                    }
                ],
                message="Invalid status",
            )

        complaint = await complaint_crud.get_complaint(db, target_id)
        if complaint is None:
            raise NotFoundError("Complaint not found")

        previous_status = complaint.status
        complaint = await complaint_crud.set_status(db, complaint, new_status, utc_now())

        if previous_status != new_status:
            logger.info(
                f"Complaint {complaint.id} status {previous_status.value} -> "
                f"{new_status.value} by {admin.email}"
            )
            self.dispatcher.submit(
                NotificationEvent(
                    kind=NotificationKind.STATUS_CHANGED,
                    complaint=ComplaintSnapshot.from_model(complaint),
                    previous_status=previous_status.value,
                )
            )
        else:
            logger.debug(f"Complaint {complaint.id} status unchanged ({new_status.value})")
        return complaint

    @handle_database_exceptions("delete_complaint")
    async def delete(
        self, db: AsyncSession, complaint_id: str, caller: Optional[Principal]
    ) -> UUID:
        """Hard-delete a complaint. No notification is sent."""
        admin = _require_admin(caller)
        target_id = parse_complaint_id(complaint_id)

        if not await complaint_crud.delete_complaint(db, target_id):
            raise NotFoundError("Complaint not found")

        logger.info(f"Complaint {target_id} deleted by {admin.email}")
        return target_id

    # ==================== Queries ====================

    @handle_database_exceptions("get_complaint")
    async def get(self, db: AsyncSession, complaint_id: str) -> Complaint:
        complaint = await complaint_crud.get_complaint(db, parse_complaint_id(complaint_id))
        if complaint is None:
            raise NotFoundError("Complaint not found")
        return complaint

    @handle_database_exceptions("list_complaints")
    async def list_complaints(
        self,
        db: AsyncSession,
        *,
        status: Optional[ComplaintStatus] = None,
        priority: Optional[ComplaintPriority] = None,
        category: Optional[ComplaintCategory] = None,
        user_email: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = complaint_crud.DEFAULT_SORT,
        sort_order: SortOrder = SortOrder.DESC,
    ) -> Tuple[List[Complaint], Pagination]:
        """
        Filtered, sorted page of complaints.

        ``limit`` defaults to the configured page size and is capped at the
        configured maximum. Unknown sort keys fall back to ``dateSubmitted``.
        """
        page = max(page, 1)
        if limit is None:
            limit = self.pagination.default_page_size
        limit = min(max(limit, 1), self.pagination.max_page_size)

        filters: Dict[str, Any] = {
            "status": status,
            "priority": priority,
            "category": category,
            "user_email": user_email.strip().lower() if user_email else None,
        }
        complaints, total = await complaint_crud.list_complaints(
            db,
            filters=filters,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        pagination = Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        )
        return complaints, pagination

    @handle_database_exceptions("complaint_stats")
    async def stats(self, db: AsyncSession, caller: Optional[Principal]) -> ComplaintStats:
        """Dashboard counters; every enum value appears, zero when unused."""
        _require_admin(caller)

        def zero_filled(enum_cls: Type, counts: Dict[Any, int]) -> Dict[str, int]:
            by_value = {getattr(key, "value", key): total for key, total in counts.items()}
            return {member.value: by_value.get(member.value, 0) for member in enum_cls}

        by_status = await complaint_crud.count_grouped(db, Complaint.status)
        by_priority = await complaint_crud.count_grouped(db, Complaint.priority)
        by_category = await complaint_crud.count_grouped(db, Complaint.category)

        return ComplaintStats(
            total=await complaint_crud.count_total(db),
            by_status=zero_filled(ComplaintStatus, by_status),
            by_priority=zero_filled(ComplaintPriority, by_priority),
            by_category=zero_filled(ComplaintCategory, by_category),
            recent_complaints=await complaint_crud.count_submitted_since(
                db, utc_now() - RECENT_WINDOW
            ),
        )
