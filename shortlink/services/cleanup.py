"""Cleanup service for the link service.

This module contains the CleanupService class which implements the
maintenance operations run by the scheduler: pruning the click log and
purging links that were soft-deleted long ago.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.config import settings
from shortlink.models.link import utcnow
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository
from shortlink.services.exceptions import CleanupError

logger = logging.getLogger(__name__)


class CleanupService:
    """
    Service for maintenance operations.

    Retention windows come from settings; a window of None disables that
    part of the cleanup.
    """

    def __init__(self, link_repository: LinkRepository, click_repository: ClickRepository):
        self.link_repository = link_repository
        self.click_repository = click_repository

    async def prune_click_events(self, db: AsyncSession, retention_days: Optional[int]) -> int:
        """
        Delete click events older than the retention window.

        Args:
            db: Database session
            retention_days: Age in days after which events are removed

        Returns:
            Number of events deleted
        """
        if retention_days is None:
            return 0
        cutoff = utcnow() - timedelta(days=retention_days)
        try:
            deleted = await self.click_repository.delete_older_than(db, cutoff)
        except RepositoryError as e:
            logger.error(f"Error pruning click events: {e}", exc_info=True)
            raise CleanupError(f"Failed to prune click events: {e}") from e
        logger.info(f"Pruned {deleted} click events older than {cutoff.isoformat()}")
        return deleted

    async def purge_deleted_links(self, db: AsyncSession, retention_days: Optional[int]) -> int:
        """Hard-delete links that were soft-deleted more than ``retention_days`` ago."""
        if retention_days is None:
            return 0
        cutoff = utcnow() - timedelta(days=retention_days)
        try:
            purged = await self.link_repository.purge_deleted(db, cutoff)
        except RepositoryError as e:
            logger.error(f"Error purging deleted links: {e}", exc_info=True)
            raise CleanupError(f"Failed to purge deleted links: {e}") from e
        logger.info(f"Purged {purged} links deleted before {cutoff.isoformat()}")
        return purged

    async def run(self, db: AsyncSession) -> Dict[str, Any]:
        """
        Run every cleanup step with the configured retention windows.

        Returns:
            Dict with the number of click events and links removed and the run time
        """
        start_time = utcnow()
        clicks = await self.prune_click_events(db, settings.CLICK_EVENT_RETENTION_DAYS)
        links = await self.purge_deleted_links(db, settings.DELETED_LINK_RETENTION_DAYS)
        return {
            "click_events_deleted": clicks,
            "links_purged": links,
            "execution_time": (utcnow() - start_time).total_seconds(),
        }
