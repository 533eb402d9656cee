"""
Base CRUD operations as plain functions.

Provides reusable database operations that can be used across different models.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


def _apply_filters(stmt, model: Type[ModelType], filters: Optional[Dict[str, Any]]):
    if filters:
        for field, value in filters.items():
            if value is not None:
                stmt = stmt.where(getattr(model, field) == value)
    return stmt


async def find_by_id(
    db: AsyncSession,
    model: Type[ModelType],
    id_value: Any,
) -> Optional[ModelType]:
    """
    Find a single record by primary key.

    Returns:
        Model instance or None if not found
    """
    return await db.get(model, id_value)


async def find_one(
    db: AsyncSession,
    model: Type[ModelType],
    *,
    filters: Optional[Dict[str, Any]] = None,
) -> Optional[ModelType]:
    """
    Find a single record matching filters.

    Args:
        db: Database session
        model: SQLModel class
        filters: Dictionary of field:value filters

    Returns:
        Model instance or None if not found
    """
    stmt = _apply_filters(select(model), model, filters)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def find_paginated(
    db: AsyncSession,
    model: Type[ModelType],
    *,
    page: int = 1,
    per_page: int = 50,
    filters: Optional[Dict[str, Any]] = None,
    order_by: Optional[Iterable[Any]] = None,
) -> Tuple[List[ModelType], int]:
    """
    Find records with pagination and total count.

    Args:
        db: Database session
        model: SQLModel class
        page: Page number (1-indexed)
        per_page: Items per page
        filters: Dictionary of field:value filters (None values are ignored)
        order_by: Columns to order by

    Returns:
        Tuple of (list of records, total count)
    """
    stmt = _apply_filters(select(model), model, filters)
    count_stmt = _apply_filters(select(func.count()).select_from(model), model, filters)

    total = (await db.execute(count_stmt)).scalar_one()

    if order_by is not None:
        stmt = stmt.order_by(*order_by)

    offset = (page - 1) * per_page
    stmt = stmt.offset(offset).limit(per_page)

    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def count(
    db: AsyncSession,
    model: Type[ModelType],
    *,
    filters: Optional[Dict[str, Any]] = None,
) -> int:
    """Count records matching filters."""
    stmt = _apply_filters(select(func.count()).select_from(model), model, filters)
    result = await db.execute(stmt)
    return result.scalar_one()


async def create(
    db: AsyncSession,
    model: Type[ModelType],
    *,
    obj_in: Dict[str, Any],
    commit: bool = True,
) -> ModelType:
    """
    Create a new record.

    Args:
        db: Database session
        model: SQLModel class
        obj_in: Dictionary of field values
        commit: Whether to commit immediately

    Returns:
        Created model instance
    """
    db_obj = model(**obj_in)
    db.add(db_obj)

    if commit:
        await db.commit()
        await db.refresh(db_obj)
    else:
        await db.flush()

    return db_obj


async def update(
    db: AsyncSession,
    db_obj: ModelType,
    *,
    obj_in: Dict[str, Any],
    commit: bool = True,
) -> ModelType:
    """
    Apply field values to a loaded record and persist them in one UPDATE.

    Returns:
        The refreshed model instance
    """
    for field, value in obj_in.items():
        setattr(db_obj, field, value)
    db.add(db_obj)

    if commit:
        await db.commit()
        await db.refresh(db_obj)
    else:
        await db.flush()

    return db_obj


async def delete(
    db: AsyncSession,
    model: Type[ModelType],
    *,
    id_value: Any,
    commit: bool = True,
) -> bool:
    """
    Hard-delete a record.

    Returns:
        True if deleted, False if not found
    """
    db_obj = await find_by_id(db, model, id_value)
    if not db_obj:
        return False

    await db.delete(db_obj)

    if commit:
        await db.commit()
    else:
        await db.flush()

    return True


async def exists(
    db: AsyncSession,
    model: Type[ModelType],
    *,
    filters: Dict[str, Any],
) -> bool:
    """Check if a record exists matching filters."""
    return await count(db, model, filters=filters) > 0
