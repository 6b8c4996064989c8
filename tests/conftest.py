"""Test fixtures for the link service."""

import os
import tempfile

# Settings are read at import time, so the environment is prepared first
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ALLOWED_DOMAINS"] = '["elga.io", "go.example.com"]'
os.environ["DEFAULT_DOMAIN"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["OTEL_ENABLED"] = "false"
os.environ["ACCESS_LOG_ENABLED"] = "false"
os.environ["DB_AUTO_CREATE_TABLES"] = "false"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="shortlink-test-logs-")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from shortlink.api.dependencies import get_click_accounting, get_link_cache  # noqa: E402
from shortlink.core.cache import LinkCache  # noqa: E402
from shortlink.db.base import init_models  # noqa: E402
from shortlink.db.session import get_db  # noqa: E402
from shortlink.main import app as main_app  # noqa: E402
from shortlink.services.accounting import ClickAccounting  # noqa: E402
from tests.utils import MockRedis  # noqa: E402


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-backed SQLite database, fresh for every test.

    A file is used rather than ``:memory:`` so that background work can
    open its own connections to the same data.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shortlink-test.db'}",
        poolclass=NullPool,
        echo=False,
    )
    await init_models(bind=engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def mock_redis() -> MockRedis:
    return MockRedis()


@pytest.fixture
def link_cache(mock_redis) -> LinkCache:
    return LinkCache(mock_redis, timeout=1.0)


@pytest.fixture
def test_app(session_factory, link_cache):
    """The application with its database, cache and accounting pointed at the test database."""
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    async def _override_get_link_cache():
        return link_cache

    async def _override_get_click_accounting():
        return ClickAccounting(session_factory=session_factory, retry_delay=0)

    main_app.dependency_overrides[get_db] = _override_get_db
    main_app.dependency_overrides[get_link_cache] = _override_get_link_cache
    main_app.dependency_overrides[get_click_accounting] = _override_get_click_accounting

    yield main_app

    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the application; redirects are not followed."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client
