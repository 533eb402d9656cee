"""CRUD operations for users."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crud import base_crud
from db.enums import UserRole
from db.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Case-insensitive lookup by email."""
    stmt = select(User).where(func.lower(User.email) == normalize_email(email))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def email_exists(db: AsyncSession, email: str) -> bool:
    return await get_by_email(db, email) is not None


async def admin_exists(db: AsyncSession) -> bool:
    return await base_crud.exists(db, User, filters={"role": UserRole.ADMIN})


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password_hash: str,
    role: UserRole,
) -> User:
    return await base_crud.create(
        db,
        User,
        obj_in={
            "email": normalize_email(email),
            "password_hash": password_hash,
            "role": role,
        },
    )


async def touch_last_login(db: AsyncSession, user: User, at: datetime) -> User:
    return await base_crud.update(db, user, obj_in={"last_login": at, "updated_at": at})


async def list_active_admins(db: AsyncSession) -> List[User]:
    stmt = (
        select(User)
        .where(User.role == UserRole.ADMIN)
        .where(User.is_active.is_(True))
        .order_by(User.email)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
