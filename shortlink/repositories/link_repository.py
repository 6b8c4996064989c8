"""Link Repository for the link service.

This module provides the LinkRepository class for database operations on Link
rows: optimistic creation, code and id lookups, filtered listings, click
counters, owner-checked updates and soft deletion.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import case, delete, func, literal, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.validation import LinkValidationError, normalize_domain, validate_title, validate_url
from shortlink.models.click import ClickEvent
from shortlink.models.link import Link, LinkCreate, UTCDateTime, utcnow
from shortlink.repositories.base import (
    BaseRepository,
    DuplicateEntityError,
    EntityAccessError,
    EntityNotFoundError,
    RepositoryError,
    logger,
)

SORTABLE_FIELDS = ("created_at", "updated_at", "keyword", "url", "title", "clicks")
UPDATABLE_FIELDS = ("url", "title", "active")


@dataclass(frozen=True)
class LinkFilter:
    """Criteria for listing links."""
    owner_id: Optional[str] = None
    active: Optional[bool] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class SortOrder:
    field: str = "created_at"
    descending: bool = True

    def __str__(self) -> str:
        return f"{self.field}:{'desc' if self.descending else 'asc'}"


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class LinkRepository(BaseRepository[Link, LinkCreate]):
    """
    Repository for Link database operations.

    Uniqueness of ``(domain, keyword)`` is enforced by the database
    constraint; ``create_link`` inserts optimistically and reports a
    violation as DuplicateEntityError.
    """

    def __init__(self):
        super().__init__(Link)

    async def create_link(
        self,
        db: AsyncSession,
        data: Union[LinkCreate, Dict[str, Any]]
    ) -> Link:
        """
        Insert a new link.

        Args:
            db: Database session
            data: Link fields (LinkCreate or dictionary)

        Returns:
            The created Link

        Raises:
            LinkValidationError: If a field is invalid
            DuplicateEntityError: If the (domain, keyword) pair is taken
            RepositoryError: On other database errors
        """
        data_dict = data.model_dump() if isinstance(data, LinkCreate) else dict(data)
        data_dict["domain"] = normalize_domain(data_dict.get("domain"))
        data_dict["url"] = validate_url(data_dict.get("url"))
        data_dict["title"] = validate_title(data_dict.get("title"))
        if not data_dict.get("keyword"):
            raise LinkValidationError("keyword", "keyword is required")

        link = Link(**data_dict)
        db.add(link)
        try:
            await db.flush()
        except IntegrityError as e:
            # The failed flush leaves no row behind once rolled back
            await db.rollback()
            raise DuplicateEntityError(
                Link, "keyword", f"{data_dict['domain']}/{data_dict['keyword']}"
            ) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error creating link: {e}")
            raise RepositoryError(f"Database error creating link: {e}") from e

        await db.refresh(link)
        return link

    async def get_by_code(
        self,
        db: AsyncSession,
        domain: str,
        keyword: str,
        include_deleted: bool = False,
    ) -> Optional[Link]:
        try:
            query = select(Link).where(Link.domain == domain.lower(), Link.keyword == keyword)
            if not include_deleted:
                query = query.where(Link.deleted_at.is_(None))
            result = await db.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving link {domain}/{keyword}: {e}")
            raise RepositoryError(f"Database error retrieving link: {e}") from e

    async def get_live_by_id(self, db: AsyncSession, link_id: str) -> Optional[Link]:
        """Get a link by id unless it has been soft-deleted."""
        link = await self.get_by_id(db, link_id)
        if link is None or link.is_deleted:
            return None
        return link

    async def get_redirect_target(
        self,
        db: AsyncSession,
        domain: str,
        keyword: str,
    ) -> Optional[Tuple[str, str, bool]]:
        """
        Narrow read for the redirect path.

        Returns:
            (id, url, active) of the live link, or None
        """
        try:
            query = (
                select(Link.id, Link.url, Link.active)
                .where(
                    Link.domain == domain,
                    Link.keyword == keyword,
                    Link.deleted_at.is_(None),
                )
            )
            result = await db.execute(query)
            row = result.first()
            return tuple(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error resolving link {domain}/{keyword}: {e}")
            raise RepositoryError(f"Database error resolving link: {e}") from e

    def _filter_conditions(self, filters: LinkFilter) -> List[Any]:
        conditions = [Link.deleted_at.is_(None)]
        if filters.owner_id is not None:
            conditions.append(Link.owner_id == filters.owner_id)
        if filters.active is not None:
            conditions.append(Link.active == filters.active)
        if filters.search:
            pattern = _like_pattern(filters.search.strip())
            conditions.append(or_(
                Link.url.ilike(pattern, escape="\\"),
                Link.title.ilike(pattern, escape="\\"),
                Link.keyword.ilike(pattern, escape="\\"),
            ))
        return conditions

    async def list_links(
        self,
        db: AsyncSession,
        filters: LinkFilter,
        page: int,
        limit: int,
        sort: SortOrder,
    ) -> Tuple[List[Link], int]:
        """
        Get one page of links matching the filter.

        Args:
            db: Database session
            filters: Owner, active flag and search term
            page: 1-indexed page number
            limit: Page size
            sort: Sort field and direction; id breaks ties

        Returns:
            Tuple of (links on the page, total matching links)
        """
        if sort.field not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort links by {sort.field}")

        conditions = self._filter_conditions(filters)
        column = getattr(Link, sort.field)
        if sort.descending:
            ordering = (column.desc(), Link.id.desc())
        else:
            ordering = (column.asc(), Link.id.asc())

        try:
            total = await self.count(db, *conditions)
            query = (
                select(Link)
                .where(*conditions)
                .order_by(*ordering)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            result = await db.execute(query)
            return list(result.scalars().all()), total
        except SQLAlchemyError as e:
            logger.error(f"Error listing links: {e}")
            raise RepositoryError(f"Database error listing links: {e}") from e

    async def increment_clicks(
        self,
        db: AsyncSession,
        link_id: str,
        clicked_at: Optional[datetime] = None,
    ) -> int:
        """
        Add one click in a single UPDATE.

        ``last_clicked_at`` only moves forward, so retried or late
        deliveries cannot rewind it.

        Returns:
            Number of rows updated (0 if the link no longer exists)
        """
        clicked_at = literal(clicked_at or utcnow(), UTCDateTime)
        try:
            stmt = (
                update(Link)
                .where(Link.id == link_id)
                .values(
                    clicks=Link.clicks + 1,
                    last_clicked_at=case(
                        (Link.last_clicked_at.is_(None), clicked_at),
                        (Link.last_clicked_at < clicked_at, clicked_at),
                        else_=Link.last_clicked_at,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error incrementing clicks for link {link_id}: {e}")
            raise RepositoryError(f"Database error incrementing clicks: {e}") from e

    async def _get_owned(self, db: AsyncSession, link_id: str, owner_id: Optional[str]) -> Link:
        link = await self.get_live_by_id(db, link_id)
        if link is None:
            raise EntityNotFoundError(Link, link_id)
        # Anonymous links have no owner who could change them
        if link.owner_id is None or link.owner_id != owner_id:
            raise EntityAccessError(Link, link_id)
        return link

    async def update_link(
        self,
        db: AsyncSession,
        link_id: str,
        owner_id: Optional[str],
        changes: Dict[str, Any],
    ) -> Link:
        """
        Apply a partial update to a link the caller owns.

        Only url, title and active may change; domain and keyword are
        immutable.

        Raises:
            EntityNotFoundError: If the link does not exist or is deleted
            EntityAccessError: If the caller is not the owner
            LinkValidationError: If a change is invalid
        """
        for field in changes:
            if field not in UPDATABLE_FIELDS:
                raise LinkValidationError(field, f"{field} cannot be changed")
        if "url" in changes:
            changes["url"] = validate_url(changes["url"])
        if "title" in changes:
            changes["title"] = validate_title(changes["title"])
        if "active" in changes and changes["active"] is None:
            raise LinkValidationError("active", "active must be true or false")

        link = await self._get_owned(db, link_id, owner_id)
        try:
            for key, value in changes.items():
                setattr(link, key, value)
            link.updated_at = utcnow()
            await db.flush()
            await db.refresh(link)
            return link
        except SQLAlchemyError as e:
            logger.error(f"Error updating link {link_id}: {e}")
            raise RepositoryError(f"Database error updating link: {e}") from e

    async def soft_delete(self, db: AsyncSession, link_id: str, owner_id: Optional[str]) -> Link:
        """
        Mark a link deleted. Its keyword stays reserved.

        Raises:
            EntityNotFoundError: If the link does not exist or is already deleted
            EntityAccessError: If the caller is not the owner
        """
        link = await self._get_owned(db, link_id, owner_id)
        try:
            now = utcnow()
            link.deleted_at = now
            link.updated_at = now
            await db.flush()
            return link
        except SQLAlchemyError as e:
            logger.error(f"Error deleting link {link_id}: {e}")
            raise RepositoryError(f"Database error deleting link: {e}") from e

    async def purge_deleted(self, db: AsyncSession, before: datetime) -> int:
        """
        Hard-delete links soft-deleted before ``before``, with their click events.

        Returns:
            Number of links removed
        """
        doomed = select(Link.id).where(Link.deleted_at.is_not(None), Link.deleted_at < before)
        try:
            await db.execute(delete(ClickEvent).where(ClickEvent.link_id.in_(doomed)))
        except SQLAlchemyError as e:
            logger.error(f"Error deleting click events of purged links: {e}")
            raise RepositoryError(f"Database error purging links: {e}") from e
        return await self.bulk_delete(db, Link.deleted_at.is_not(None), Link.deleted_at < before)
