"""Tests for click accounting."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from shortlink.models.link import Link
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository
from shortlink.services.accounting import ClickAccounting
from tests.utils import create_test_link


class FlakyLinkRepository(LinkRepository):
    """Fails the first ``failures`` increments."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def increment_clicks(self, db, link_id, clicked_at=None):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise RepositoryError("database is locked")
        return await super().increment_clicks(db, link_id, clicked_at)


class FailingClickRepository(ClickRepository):
    async def create_click_event(self, db, data):
        raise RepositoryError("click log unavailable")


async def reload_link(session_factory, link_id) -> Link:
    async with session_factory() as session:
        return await session.get(Link, link_id)


@pytest.mark.service
class TestClickAccounting:

    @pytest.mark.asyncio
    async def test_record_click(self, test_db, session_factory):
        link = await create_test_link(test_db, commit=True)
        accounting = ClickAccounting(session_factory=session_factory, retry_delay=0)
        clicked_at = datetime(2024, 2, 2, 10, 0, tzinfo=timezone.utc)

        recorded = await accounting.record(
            link.id, clicked_at, "198.51.100.4", "Mozilla/5.0", "https://ref.example.com/"
        )

        assert recorded is True
        stored = await reload_link(session_factory, link.id)
        assert stored.clicks == 1
        assert stored.last_clicked_at == clicked_at
        async with session_factory() as session:
            events = await ClickRepository().recent_for_link(session, link.id)
        assert len(events) == 1
        assert events[0].remote_address == "198.51.100.4"
        assert events[0].referer == "https://ref.example.com/"

    @pytest.mark.asyncio
    async def test_concurrent_clicks_are_all_counted(self, test_db, session_factory):
        link = await create_test_link(test_db, commit=True)
        accounting = ClickAccounting(session_factory=session_factory, retry_delay=0.01, max_attempts=10)
        start = datetime(2024, 2, 2, tzinfo=timezone.utc)

        results = await asyncio.gather(*[
            accounting.record(link.id, start + timedelta(seconds=i)) for i in range(20)
        ])

        assert all(results)
        stored = await reload_link(session_factory, link.id)
        assert stored.clicks == 20
        assert stored.last_clicked_at == start + timedelta(seconds=19)

    @pytest.mark.asyncio
    async def test_unknown_link_is_dropped(self, session_factory):
        accounting = ClickAccounting(session_factory=session_factory, retry_delay=0)

        assert await accounting.record("no-such-id") is False

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, test_db, session_factory):
        link = await create_test_link(test_db, commit=True)
        repository = FlakyLinkRepository(failures=2)
        accounting = ClickAccounting(
            session_factory=session_factory,
            link_repository=repository,
            max_attempts=3,
            retry_delay=0,
        )

        assert await accounting.record(link.id) is True
        assert repository.attempts == 3
        stored = await reload_link(session_factory, link.id)
        assert stored.clicks == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, test_db, session_factory):
        link = await create_test_link(test_db, commit=True)
        repository = FlakyLinkRepository(failures=5)
        accounting = ClickAccounting(
            session_factory=session_factory,
            link_repository=repository,
            max_attempts=2,
            retry_delay=0,
        )

        assert await accounting.record(link.id) is False
        assert repository.attempts == 2
        stored = await reload_link(session_factory, link.id)
        assert stored.clicks == 0

    @pytest.mark.asyncio
    async def test_counter_and_event_commit_together(self, test_db, session_factory):
        link = await create_test_link(test_db, commit=True)
        accounting = ClickAccounting(
            session_factory=session_factory,
            click_repository=FailingClickRepository(),
            max_attempts=1,
            retry_delay=0,
        )

        assert await accounting.record(link.id) is False
        stored = await reload_link(session_factory, link.id)
        assert stored.clicks == 0
