"""Click event repository."""

from datetime import datetime
from typing import Any, Dict, List, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.models.click import ClickEvent, ClickEventCreate
from shortlink.repositories.base import BaseRepository, RepositoryError, logger


class ClickRepository(BaseRepository[ClickEvent, ClickEventCreate]):
    """Stores and queries the per-visit click log."""

    def __init__(self):
        super().__init__(ClickEvent)

    async def create_click_event(
        self,
        db: AsyncSession,
        data: Union[ClickEventCreate, Dict[str, Any]]
    ) -> ClickEvent:
        return await self.create(db, data)

    async def count_for_link(self, db: AsyncSession, link_id: str) -> int:
        return await self.count(db, ClickEvent.link_id == link_id)

    async def recent_for_link(self, db: AsyncSession, link_id: str, limit: int = 50) -> List[ClickEvent]:
        """Most recent click events of a link, newest first."""
        try:
            query = (
                select(ClickEvent)
                .where(ClickEvent.link_id == link_id)
                .order_by(ClickEvent.clicked_at.desc(), ClickEvent.id.desc())
                .limit(limit)
            )
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving clicks for link {link_id}: {e}")
            raise RepositoryError(f"Database error retrieving clicks: {e}") from e

    async def delete_older_than(self, db: AsyncSession, cutoff: datetime) -> int:
        return await self.bulk_delete(db, ClickEvent.clicked_at < cutoff)
