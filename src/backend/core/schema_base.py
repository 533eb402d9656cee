"""
Base schema models for API requests and responses.

Provides camelCase field aliases for the web client, UTC datetime
serialization with a 'Z' suffix, and the success envelope every endpoint
returns.
"""

from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, field_serializer

T = TypeVar("T")


def to_camel(string: str) -> str:
    """
    Convert snake_case to camelCase.

    Example:
        >>> to_camel("date_submitted")
        'dateSubmitted'
    """
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Serialize a datetime as ISO 8601 UTC with a 'Z' suffix.

    Naive datetimes are assumed to already be UTC (that is how they are
    stored); aware ones are converted first.
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)

    return dt.isoformat() + "Z"


class HTTPSchemaModel(BaseModel):
    """
    Base model for all HTTP API schemas.

    - camelCase aliases for output, snake_case or camelCase accepted on input
    - Built directly from ORM rows (from_attributes=True)
    - Datetimes serialized with the UTC 'Z' suffix
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    @classmethod
    def serialize_any_datetime(cls, value: Any, handler: Any) -> Any:
        if isinstance(value, datetime):
            return serialize_datetime(value)
        return handler(value)


class ApiResponse(HTTPSchemaModel, Generic[T]):
    """Success envelope: ``{"success": true, "data": ..., "message": ...}``."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
