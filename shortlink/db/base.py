"""Database base configuration for SQLAlchemy with SQLModel.

This module provides the async engine, the session factory, table
creation and a connectivity health check.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import text
from sqlmodel import SQLModel

from shortlink.core.config import settings

logger = logging.getLogger(__name__)

_POOL_CONFIG = {
    "pool_size": settings.POSTGRES_POOL_SIZE,
    "max_overflow": settings.POSTGRES_POOL_MAX_OVERFLOW,
    "pool_timeout": settings.POSTGRES_POOL_TIMEOUT,
    "pool_recycle": settings.POSTGRES_POOL_RECYCLE,
    "pool_pre_ping": True,
}

# Mapping of environment to SQLAlchemy engine configurations
ENGINE_CONFIGS: Dict[str, Dict] = {
    "development": {"echo": settings.DB_ECHO, **_POOL_CONFIG},
    "staging": {"echo": False, **_POOL_CONFIG},
    "production": {"echo": False, **_POOL_CONFIG},
    "testing": {"echo": False, "poolclass": NullPool},
}


def get_engine_config(database_url: str) -> Dict:
    """Engine options for the current environment.

    SQLite has no server-side pool, so it always gets NullPool.
    """
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"echo": settings.DB_ECHO, "poolclass": NullPool}
    return ENGINE_CONFIGS.get(settings.ENVIRONMENT.value, ENGINE_CONFIGS["development"])


def get_engine() -> AsyncEngine:
    engine_url = str(settings.SQLALCHEMY_DATABASE_URI)
    logger.info(f"Creating database engine for {make_url(engine_url).render_as_string(hide_password=True)}")
    return create_async_engine(engine_url, **get_engine_config(engine_url))


# Shared async engine instance
engine = get_engine()

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_session(session_factory: async_sessionmaker = None) -> AsyncGenerator[AsyncSession, None]:
    """Open a session from the given factory (the application one by default)."""
    session = (session_factory or async_session_factory)()
    try:
        yield session
    finally:
        await session.close()


async def init_models(bind: AsyncEngine = None) -> None:
    """Create missing tables for all registered models."""
    # Registers the table models on SQLModel.metadata
    import shortlink.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ensured")


class DatabaseHealthCheck:
    """Health check functionality for the database connection."""

    @staticmethod
    async def check_connection(session_factory: async_sessionmaker = None) -> Dict:
        """Check database connectivity.

        Returns:
            Dict: status, latency_ms and error
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        status = "healthy"
        error_message = None
        latency_ms = 0

        try:
            async with get_session(session_factory) as session:
                await session.execute(text("SELECT 1"))
            latency_ms = int((loop.time() - start_time) * 1000)
        except Exception as e:
            status = "unhealthy"
            error_message = str(e)
            logger.error(f"Database health check failed: {e}")

        return {
            "status": status,
            "latency_ms": latency_ms,
            "error": error_message,
        }
