"""Redirect resolution: the hot path from (domain, keyword) to a destination."""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.core.cache import CacheEntry, LinkCache
from shortlink.core.config import settings
from shortlink.core.telemetry import get_meter
from shortlink.core.validation import is_resolvable_code
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.link_repository import LinkRepository
from shortlink.services.exceptions import LinkInactiveError, LinkNotFoundError, UnavailableError

logger = logging.getLogger(__name__)

meter = get_meter("shortlink.resolver")
redirect_counter = meter.create_counter(
    name="shortlink.redirects",
    description="Redirect lookups by outcome",
    unit="1",
)
cache_lookups = meter.create_counter(
    name="shortlink.cache.lookups",
    description="Redirect cache lookups by result",
    unit="1",
)


@dataclass(frozen=True)
class ResolvedLink:
    link_id: str
    url: str


class RedirectResolver:
    """
    Resolves short codes, cache first.

    Both found and not-found results are cached, the latter briefly, so
    scans of random codes do not reach the store. Cache trouble only costs
    a store read; a slow or failing store makes the redirect fail with
    UnavailableError.
    """

    def __init__(self, link_repository: LinkRepository, cache: LinkCache, store_timeout: float = None):
        self.link_repository = link_repository
        self.cache = cache
        self.store_timeout = store_timeout if store_timeout is not None else settings.STORE_OPERATION_TIMEOUT

    async def resolve(self, db: AsyncSession, domain: str, keyword: str) -> ResolvedLink:
        """
        Resolve a short code to its destination.

        Args:
            db: Database session
            domain: Short link domain from the request
            keyword: Keyword from the request

        Returns:
            ResolvedLink with the link id and destination URL

        Raises:
            LinkNotFoundError: If no live link has this code
            LinkInactiveError: If the link is switched off
            UnavailableError: If the store times out or fails
        """
        domain = domain.lower()
        if not is_resolvable_code(domain, keyword):
            redirect_counter.add(1, {"outcome": "not_found"})
            raise LinkNotFoundError()

        entry = await self.cache.get(domain, keyword)
        if entry is not None:
            cache_lookups.add(1, {"result": "hit"})
        else:
            cache_lookups.add(1, {"result": "miss"})
            entry = await self._load(db, domain, keyword)
            await self.cache.fill(domain, keyword, entry)

        if entry.missing:
            redirect_counter.add(1, {"outcome": "not_found"})
            raise LinkNotFoundError()
        if not entry.active:
            redirect_counter.add(1, {"outcome": "inactive"})
            logger.debug(f"Redirect for inactive link {entry.link_id}")
            raise LinkInactiveError()

        redirect_counter.add(1, {"outcome": "redirect"})
        return ResolvedLink(link_id=entry.link_id, url=entry.url)

    async def _load(self, db: AsyncSession, domain: str, keyword: str) -> CacheEntry:
        try:
            row = await asyncio.wait_for(
                self.link_repository.get_redirect_target(db, domain, keyword),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Link store timed out resolving {domain}/{keyword}")
            redirect_counter.add(1, {"outcome": "unavailable"})
            raise UnavailableError() from e
        except RepositoryError as e:
            logger.error(f"Link store failed resolving {domain}/{keyword}: {e}")
            redirect_counter.add(1, {"outcome": "unavailable"})
            raise UnavailableError() from e

        if row is None:
            return CacheEntry.not_found()
        link_id, url, active = row
        return CacheEntry(link_id=link_id, url=url, active=bool(active))
