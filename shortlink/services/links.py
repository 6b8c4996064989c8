"""Link management service.

This module contains the LinkService class which implements the business
logic for creating, reading, listing, updating and deleting short links.
"""

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.cache import CacheEntry, LinkCache
from shortlink.core.config import settings
from shortlink.core.telemetry import get_meter
from shortlink.core.validation import (
    LinkValidationError,
    normalize_domain,
    validate_keyword,
    validate_title,
    validate_url,
)
from shortlink.db.session import db_transaction
from shortlink.models.click import ClickEvent
from shortlink.models.link import Link
from shortlink.repositories.base import (
    DuplicateEntityError,
    EntityAccessError,
    EntityNotFoundError,
    RepositoryError,
)
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import SORTABLE_FIELDS, LinkFilter, LinkRepository, SortOrder
from shortlink.services.codegen import KeywordGenerator
from shortlink.services.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    LinkNotFoundError,
    ResourceExhaustedError,
    UnauthorizedError,
    UnavailableError,
)

logger = logging.getLogger(__name__)

meter = get_meter("shortlink.links")
links_created = meter.create_counter(
    name="shortlink.links.created",
    description="Number of links created",
    unit="1",
)
keyword_collisions = meter.create_counter(
    name="shortlink.keywords.collisions",
    description="Generated keywords rejected by the uniqueness constraint",
    unit="1",
)


@dataclass
class LinkPage:
    """One page of a link listing."""
    items: List[Link]
    page: int
    limit: int
    sort: str
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def parse_sort(sort: Optional[str]) -> SortOrder:
    """
    Parse a sort descriptor.

    Accepts ``field``, ``field:asc``, ``field:desc``, ``-field`` and
    ``field desc``. A bare field sorts ascending.

    Raises:
        InvalidInputError: For unknown fields or directions
    """
    raw = (sort or settings.PAGINATION_DEFAULT_SORT).strip()
    direction = "asc"
    if raw.startswith("-"):
        field, direction = raw[1:], "desc"
    elif ":" in raw:
        field, direction = raw.split(":", 1)
    elif " " in raw:
        field, direction = raw.split(None, 1)
    else:
        field = raw

    field, direction = field.strip().lower(), direction.strip().lower()
    if field not in SORTABLE_FIELDS:
        raise InvalidInputError.for_field(
            "sort", f"cannot sort by '{field}', choose one of {', '.join(SORTABLE_FIELDS)}"
        )
    if direction not in ("asc", "desc"):
        raise InvalidInputError.for_field("sort", "sort direction must be 'asc' or 'desc'")
    return SortOrder(field=field, descending=direction == "desc")


def clamp_pagination(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    """Page is at least 1; limit falls back to the default and is capped."""
    if limit is None or limit <= 0:
        limit = settings.PAGINATION_DEFAULT_LIMIT
    limit = min(limit, settings.PAGINATION_MAX_LIMIT)
    page = page if page and page > 0 else 1
    return page, limit


def redirect_entry(link: Link) -> CacheEntry:
    return CacheEntry(link_id=link.id, url=link.url, active=link.active)


@contextmanager
def translate_repository_errors():
    """Turn repository and validation errors into service errors."""
    try:
        yield
    except LinkValidationError as e:
        raise InvalidInputError.for_field(e.field, e.message) from e
    except EntityNotFoundError as e:
        raise LinkNotFoundError() from e
    except EntityAccessError as e:
        raise ForbiddenError() from e
    except DuplicateEntityError as e:
        raise ConflictError() from e
    except RepositoryError as e:
        logger.error(f"Link store error: {e}")
        raise UnavailableError() from e


class LinkService:
    """
    Service for managing short links.

    Writes commit first and then store the new redirect entry for the code
    (a not-found marker after a delete) before the call returns. Lookups
    only fill empty keys, so a lookup racing a write cannot put the older
    mapping back.
    """

    def __init__(
        self,
        link_repository: LinkRepository,
        cache: LinkCache,
        generator: KeywordGenerator,
        click_repository: Optional[ClickRepository] = None,
        max_attempts: Optional[int] = None,
    ):
        """
        Initialize the link service.

        Args:
            link_repository: Repository for link data access
            cache: Redirect cache updated after writes
            generator: Keyword generator for links without a custom keyword
            click_repository: Repository for the click log
            max_attempts: Generated keywords tried before giving up
        """
        self.link_repository = link_repository
        self.cache = cache
        self.generator = generator
        self.click_repository = click_repository or ClickRepository()
        self.max_attempts = max_attempts or settings.KEYWORD_GENERATION_MAX_ATTEMPTS

    @db_transaction(db_param_name="db")
    async def _insert(self, db: AsyncSession, data: Dict[str, Any]) -> Link:
        return await self.link_repository.create_link(db, data)

    @db_transaction(db_param_name="db")
    async def _apply_update(
        self, db: AsyncSession, link_id: str, owner_id: str, changes: Dict[str, Any]
    ) -> Link:
        return await self.link_repository.update_link(db, link_id, owner_id, changes)

    @db_transaction(db_param_name="db")
    async def _soft_delete(self, db: AsyncSession, link_id: str, owner_id: str) -> Link:
        return await self.link_repository.soft_delete(db, link_id, owner_id)

    async def create_link(
        self,
        db: AsyncSession,
        url: str,
        domain: Optional[str] = None,
        keyword: Optional[str] = None,
        title: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> Link:
        """
        Create a short link.

        Args:
            db: Database session
            url: Destination URL
            domain: Short link domain, defaults to the primary domain
            keyword: Custom keyword; generated when omitted
            title: Optional label
            owner_id: Creating user, None for anonymous links

        Returns:
            The created Link

        Raises:
            UnauthorizedError: If anonymous creation is disabled and no owner is given
            InvalidInputError: If a field is invalid
            ConflictError: If the custom keyword is taken on the domain
            ResourceExhaustedError: If no free generated keyword was found
            UnavailableError: If the link store fails
        """
        if owner_id is None and not settings.ALLOW_ANONYMOUS_LINKS:
            raise UnauthorizedError("authentication required to create links")

        custom = keyword is not None and keyword.strip() != ""
        with translate_repository_errors():
            data = {
                "url": validate_url(url),
                "domain": normalize_domain(domain),
                "title": validate_title(title),
                "owner_id": owner_id,
            }
            if custom:
                keyword = validate_keyword(keyword.strip())

        if custom:
            try:
                with translate_repository_errors():
                    link = await self._insert(db, {**data, "keyword": keyword})
            except ConflictError:
                raise ConflictError(f"keyword '{keyword}' is already taken on {data['domain']}")
        else:
            link = await self._insert_generated(db, data)

        # Replaces any negative entry left by an earlier lookup of this code
        await self.cache.set(link.domain, link.keyword, redirect_entry(link))
        links_created.add(1, {"custom": custom})
        logger.info(f"Created link {link.id} as {link.domain}/{link.keyword}")
        return link

    async def _insert_generated(self, db: AsyncSession, data: Dict[str, Any]) -> Link:
        domain = data["domain"]
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generator.generate(domain)
            try:
                with translate_repository_errors():
                    return await self._insert(db, {**data, "keyword": candidate})
            except ConflictError:
                keyword_collisions.add(1)
                logger.warning(
                    f"Generated keyword collision on {domain} (attempt {attempt}/{self.max_attempts})"
                )
        logger.error(f"Keyword space exhausted on {domain} after {self.max_attempts} attempts")
        raise ResourceExhaustedError()

    async def get_link(self, db: AsyncSession, link_id: str, requester_id: Optional[str]) -> Link:
        """
        Get a live link by id.

        Owned links are visible to their owner only; anonymous links to
        anyone who knows the id.

        Raises:
            LinkNotFoundError: If the link does not exist or is deleted
            ForbiddenError: If the link belongs to someone else
        """
        with translate_repository_errors():
            link = await self.link_repository.get_live_by_id(db, link_id)
        if link is None:
            raise LinkNotFoundError()
        if link.owner_id is not None and link.owner_id != requester_id:
            raise ForbiddenError()
        return link

    async def list_links(
        self,
        db: AsyncSession,
        owner_id: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        q: Optional[str] = None,
        sort: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> LinkPage:
        """
        List the owner's live links.

        Args:
            db: Database session
            owner_id: Whose links to list
            page: 1-indexed page, clamped to at least 1
            limit: Page size; non-positive means the default, capped at the maximum
            q: Case-insensitive search over url, title and keyword
            sort: Sort descriptor, see parse_sort
            active: Only active (True) or inactive (False) links

        Returns:
            LinkPage with the items and paging metadata
        """
        page, limit = clamp_pagination(page, limit)
        order = parse_sort(sort)
        filters = LinkFilter(owner_id=owner_id, active=active, search=(q or "").strip() or None)
        with translate_repository_errors():
            items, total = await self.link_repository.list_links(db, filters, page, limit, order)
        return LinkPage(items=items, page=page, limit=limit, sort=str(order), total=total)

    async def update_link(
        self,
        db: AsyncSession,
        link_id: str,
        requester_id: Optional[str],
        changes: Dict[str, Any],
    ) -> Link:
        """
        Change url, title or active on a link the requester owns.

        Raises:
            UnauthorizedError: If there is no requester
            InvalidInputError: If a change is invalid
            LinkNotFoundError: If the link does not exist or is deleted
            ForbiddenError: If the requester is not the owner
        """
        if requester_id is None:
            raise UnauthorizedError()
        with translate_repository_errors():
            link = await self._apply_update(db, link_id, requester_id, dict(changes))
        await self.cache.set(link.domain, link.keyword, redirect_entry(link))
        logger.info(f"Updated link {link.id} ({', '.join(sorted(changes)) or 'no fields'})")
        return link

    async def delete_link(self, db: AsyncSession, link_id: str, requester_id: Optional[str]) -> None:
        """Soft-delete a link the requester owns; the keyword stays reserved."""
        if requester_id is None:
            raise UnauthorizedError()
        with translate_repository_errors():
            link = await self._soft_delete(db, link_id, requester_id)
        await self.cache.set(link.domain, link.keyword, CacheEntry.not_found(), ttl=self.cache.ttl)
        logger.info(f"Deleted link {link.id}")

    async def get_link_clicks(
        self,
        db: AsyncSession,
        link_id: str,
        requester_id: Optional[str],
        limit: int = 50,
    ) -> Tuple[List[ClickEvent], int]:
        """
        Recent click events of a link the requester owns.

        Returns:
            Tuple of (events newest first, total number of recorded events)
        """
        if requester_id is None:
            raise UnauthorizedError()
        link = await self.get_link(db, link_id, requester_id)
        if link.owner_id is None:
            raise ForbiddenError()
        with translate_repository_errors():
            events = await self.click_repository.recent_for_link(db, link.id, limit)
            total = await self.click_repository.count_for_link(db, link.id)
        return events, total
