"""
Centralized error handling decorators for database operations.
Wraps service and CRUD coroutines so store failures are logged once, with
context, and connectivity failures surface as ServiceUnavailableError.
"""
import functools
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    StatementError,
    TimeoutError,
)

from core.exceptions import AppError, ServiceUnavailableError

logger = logging.getLogger(__name__)


class DatabaseErrorHandler:
    """Centralized database error classification."""

    CONNECTIVITY_EXCEPTIONS = (
        OperationalError,
        DisconnectionError,
        TimeoutError,
        ConnectionError,
        OSError,
    )

    @staticmethod
    def handle_database_error(
        exc: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> tuple[bool, str]:
        """
        Log a database error and classify it.

        Returns:
            Tuple of (is_connectivity_error, error_message)
        """
        context_str = f" | Context: {context}" if context else ""

        if isinstance(exc, IntegrityError):
            error_msg = f"Database integrity error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return False, error_msg

        if isinstance(exc, DatabaseErrorHandler.CONNECTIVITY_EXCEPTIONS):
            error_msg = f"Database connection error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
            return True, error_msg

        if isinstance(exc, StatementError):
            error_msg = f"Database statement error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
            return False, error_msg

        error_msg = f"Unexpected database error during {operation}: {type(exc).__name__}: {str(exc)}{context_str}"
        logger.exception(error_msg)
        return False, error_msg


def handle_database_exceptions(
    operation_name: Optional[str] = None,
    reraise: bool = True,
    default_return: Any = None,
) -> Callable:
    """
    Decorator to wrap async database operations with error handling.

    Application errors (``AppError``) pass through untouched. Connectivity
    failures are re-raised as ``ServiceUnavailableError``; other database
    errors are re-raised as-is, or swallowed in favour of ``default_return``
    when ``reraise`` is False.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, "__name__", "unknown")
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Successfully completed {operation}")
                return result

            except AppError:
                raise

            except (SQLAlchemyError, ConnectionError, OSError) as exc:
                is_connectivity, _ = DatabaseErrorHandler.handle_database_error(
                    exc,
                    operation,
                    {"function": getattr(func, "__name__", "unknown")},
                )
                if not reraise:
                    logger.info(
                        f"Operation {operation} failed but continuing with default return: {default_return}"
                    )
                    return default_return
                if is_connectivity:
                    raise ServiceUnavailableError() from exc
                raise

        return async_wrapper

    return decorator
