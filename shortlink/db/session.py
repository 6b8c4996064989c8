"""Session management for database operations.

This module provides utilities for handling SQLAlchemy async sessions
with proper lifecycle management, error handling, and transaction support.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from functools import wraps
from typing import AsyncGenerator, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.db.base import get_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Yields:
        AsyncSession: A session that is rolled back if the request fails.
    """
    async with get_session() as session:
        try:
            yield session
        except SQLAlchemyError:
            logger.exception("Database error occurred")
            await session.rollback()
            raise
        except Exception:
            await session.rollback()
            raise


def _find_session_param(func: Callable, db_param_name: Optional[str]):
    for i, (param_name, param) in enumerate(inspect.signature(func).parameters.items()):
        if db_param_name is not None:
            if param_name == db_param_name:
                return i, param_name
        elif param.annotation is AsyncSession:
            return i, param_name
    return None, None


def db_transaction(db_param_name: Optional[str] = None) -> Callable:
    """Decorator to wrap a coroutine in a database transaction.

    The session argument is located by name, or else by its ``AsyncSession``
    annotation. The transaction commits when the coroutine returns and
    rolls back when it raises.

    Args:
        db_param_name: Optional name of the database session parameter.

    Example:
        ```python
        @db_transaction()
        async def _insert(self, db: AsyncSession, data: dict) -> Link:
            return await self.link_repository.create_link(db, data)
        ```

    Raises:
        ValueError: If no session is passed to the decorated coroutine
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        db_param_pos, db_param_key = _find_session_param(func, db_param_name)
        if db_param_key is None:
            logger.warning(f"Unable to find database session parameter in function '{func.__name__}'")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            db = None
            if db_param_key is not None and db_param_key in kwargs:
                db = kwargs[db_param_key]
            elif db_param_pos is not None and len(args) > db_param_pos:
                db = args[db_param_pos]
            else:
                db = next(
                    (value for value in (*args, *kwargs.values()) if isinstance(value, AsyncSession)),
                    None,
                )

            if db is None:
                raise ValueError(
                    f"Database session not found in function arguments for '{func.__name__}'."
                )

            try:
                result = await func(*args, **kwargs)
                await db.commit()
                return result
            except Exception as e:
                await db.rollback()
                logger.debug(f"Transaction rolled back in '{func.__name__}': {e!r}")
                raise

        return wrapper
    return decorator


class SessionManager:
    """Session manager for work that runs outside a request, such as
    background click accounting and scheduled jobs.
    """

    @staticmethod
    @asynccontextmanager
    async def transaction_context(
        session_factory: Optional[async_sessionmaker] = None,
    ) -> AsyncGenerator[AsyncSession, None]:
        """Yield a fresh session; commit on success, roll back on error.

        Example:
            ```python
            async with SessionManager.transaction_context() as session:
                await link_repository.increment_clicks(session, link_id, now)
            ```
        """
        async with get_session(session_factory) as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
