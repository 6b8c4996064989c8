"""Tests for the cleanup service and the scheduled cleanup job."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from shortlink.core.config import settings
from shortlink.models.click import ClickEvent
from shortlink.models.link import Link, utcnow
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository
from shortlink.scheduler.scheduler import SchedulerService, cleanup_job
from shortlink.services.cleanup import CleanupService
from shortlink.services.exceptions import CleanupError
from tests.utils import create_test_link


@pytest.fixture
def cleanup_service():
    return CleanupService(LinkRepository(), ClickRepository())


async def seed_clicks(db, link_id, ages_in_days):
    for days in ages_in_days:
        db.add(ClickEvent(link_id=link_id, clicked_at=utcnow() - timedelta(days=days)))
    await db.flush()


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.service
class TestCleanupService:

    @pytest.mark.asyncio
    async def test_prune_click_events(self, test_db, cleanup_service):
        link = await create_test_link(test_db)
        await seed_clicks(test_db, link.id, [1, 30, 120, 400])

        deleted = await cleanup_service.prune_click_events(test_db, 90)

        assert deleted == 2
        assert await count(test_db, ClickEvent) == 2

    @pytest.mark.asyncio
    async def test_retention_none_keeps_everything(self, test_db, cleanup_service):
        link = await create_test_link(test_db, deleted_at=utcnow() - timedelta(days=365))
        await seed_clicks(test_db, link.id, [400])

        assert await cleanup_service.prune_click_events(test_db, None) == 0
        assert await cleanup_service.purge_deleted_links(test_db, None) == 0
        assert await count(test_db, Link) == 1

    @pytest.mark.asyncio
    async def test_purge_deleted_links(self, test_db, cleanup_service):
        await create_test_link(test_db, deleted_at=utcnow() - timedelta(days=60))
        await create_test_link(test_db, deleted_at=utcnow() - timedelta(days=2))
        await create_test_link(test_db)

        assert await cleanup_service.purge_deleted_links(test_db, 30) == 1
        assert await count(test_db, Link) == 2

    @pytest.mark.asyncio
    async def test_run(self, test_db, cleanup_service, monkeypatch):
        monkeypatch.setattr(settings, "CLICK_EVENT_RETENTION_DAYS", 90)
        monkeypatch.setattr(settings, "DELETED_LINK_RETENTION_DAYS", 30)
        gone = await create_test_link(test_db, deleted_at=utcnow() - timedelta(days=45))
        live = await create_test_link(test_db)
        await seed_clicks(test_db, gone.id, [1])
        await seed_clicks(test_db, live.id, [1, 100])

        result = await cleanup_service.run(test_db)

        assert result["click_events_deleted"] == 1
        assert result["links_purged"] == 1
        assert result["execution_time"] >= 0
        assert await count(test_db, ClickEvent) == 1

    @pytest.mark.asyncio
    async def test_repository_error_becomes_cleanup_error(self, test_db):
        click_repository = ClickRepository()
        click_repository.delete_older_than = AsyncMock(side_effect=RepositoryError("database is locked"))
        service = CleanupService(LinkRepository(), click_repository)

        with pytest.raises(CleanupError):
            await service.prune_click_events(test_db, 90)


@pytest.mark.service
class TestCleanupJob:

    @pytest.mark.asyncio
    async def test_cleanup_job_commits(self, test_db, session_factory, monkeypatch):
        monkeypatch.setattr(settings, "CLICK_EVENT_RETENTION_DAYS", 90)
        link = await create_test_link(test_db)
        await seed_clicks(test_db, link.id, [200, 300])
        await test_db.commit()

        result = await cleanup_job(session_factory)

        assert result["status"] == "ok"
        assert result["click_events_deleted"] == 2
        async with session_factory() as session:
            assert await count(session, ClickEvent) == 0

    @pytest.mark.asyncio
    async def test_cleanup_job_reports_errors(self, session_factory, monkeypatch):
        monkeypatch.setattr(
            ClickRepository, "delete_older_than",
            AsyncMock(side_effect=RepositoryError("database is locked")),
        )

        result = await cleanup_job(session_factory)

        assert result["status"] == "error"
        assert "database is locked" in result["error"]

    def test_scheduler_status_before_start(self):
        service = SchedulerService()

        status = service.get_status()

        assert status["running"] is False
        assert status["jobs"] == []
        service.shutdown()
