"""
Database utilities for error translation.
"""
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.errors import ConflictError, PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def translate_db_errors(
    action: str,
    conflict_message: str | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator for store methods that turns SQLAlchemy failures into domain errors.

    The decorated method must belong to an object exposing the request
    session as ``self.db``; the session is rolled back before re-raising so
    it is left usable. Nothing is retried.

    Args:
        action: Short description used in log lines and error messages
        conflict_message: Message for ConflictError on integrity violations;
            when omitted, integrity violations are reported as persistence errors

    Returns:
        Decorated coroutine function
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
            try:
                return await func(self, *args, **kwargs)
            except IntegrityError as e:
                await self.db.rollback()
                if conflict_message is not None:
                    logger.info("Integrity violation while %s: %s", action, e.orig)
                    raise ConflictError(conflict_message) from e
                logger.error("Integrity error while %s: %s", action, e)
                raise PersistenceError(f"Database error while {action}") from e
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("Database error while %s: %s", action, e)
                raise PersistenceError(f"Database error while {action}") from e

        return cast(Callable[..., Awaitable[T]], wrapper)

    return decorator
