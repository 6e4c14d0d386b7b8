"""
Error taxonomy for the engagement and retrieval services.

Services raise these; the HTTP layer maps them to status codes in
``board.main``. Only ``StorageUnavailable`` is worth retrying.
"""
import asyncio
import logging
from functools import wraps
from typing import Callable, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

logger = logging.getLogger(__name__)


class BoardError(Exception):
    """Base error for the board services."""

    def __init__(self, message: str, code: str = "board_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(BoardError):
    """Malformed input: bad id, blank query or body, parent in another thread."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, "validation_error")


class NotFound(BoardError):
    """Thread or comment does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found")


class Forbidden(BoardError):
    """Caller may not touch this resource."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, "forbidden")


class StorageUnavailable(BoardError):
    """The store could not be reached. Safe to retry the whole operation."""

    def __init__(
        self,
        message: str = "Storage temporarily unavailable",
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, "storage_unavailable")
        self.original_error = original_error


def is_storage_failure(exc: Exception) -> bool:
    """Whether ``exc`` is a transient failure of the database or Redis."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError, ConnectionError))


def storage_errors(func: Callable) -> Callable:
    """Decorator for service methods that talk to the store.

    Rolls back ``self.db`` and re-raises transient store failures as
    ``StorageUnavailable``. Everything else, ``BoardError`` included,
    propagates unchanged and is rolled back by the session scope (``get_db``).
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except BoardError:
            raise
        except Exception as e:
            if not is_storage_failure(e):
                raise
            logger.error(f"Storage failure in {func.__qualname__}: {e}")
            db = getattr(self, "db", None)
            if db is not None:
                try:
                    await db.rollback()
                except Exception as rollback_error:
                    logger.error(f"Rollback failed after storage failure: {rollback_error}")
            raise StorageUnavailable(original_error=e) from e

    return wrapper


# Ids live in 32-bit INTEGER columns on every backend
MAX_ID = 2**31 - 1


def validate_id(value, name: str = "id") -> int:
    """Return ``value`` as an int in ``1..MAX_ID`` or raise ``ValidationError``."""
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_ID:
        raise ValidationError(f"Malformed {name}: {value!r}")
    return value
