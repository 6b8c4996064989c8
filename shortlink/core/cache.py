"""Redirect cache in front of the link store.

Entries are whole JSON documents keyed by ``(domain, keyword)`` so a reader
sees either the old or the new mapping, never a mix. Store writes overwrite
the entry once committed; lookups only fill absent keys. The cache is best
effort: every call is bounded by a timeout and any failure is logged and
reported as a miss.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

from loguru import logger
from redis.exceptions import RedisError

from shortlink.core.config import settings

CACHE_ERRORS = (RedisError, OSError, asyncio.TimeoutError, ValueError)


@dataclass(frozen=True)
class CacheEntry:
    """Cached redirect mapping, or a negative marker when ``missing``."""
    link_id: Optional[str] = None
    url: Optional[str] = None
    active: bool = False
    missing: bool = False

    @classmethod
    def not_found(cls) -> "CacheEntry":
        return cls(missing=True)

    def to_json(self) -> str:
        if self.missing:
            return json.dumps({"missing": True})
        return json.dumps({"id": self.link_id, "url": self.url, "active": self.active})

    @classmethod
    def from_json(cls, raw: Any) -> "CacheEntry":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        if data.get("missing"):
            return cls.not_found()
        return cls(link_id=data["id"], url=data["url"], active=bool(data["active"]))


class LinkCache:
    """
    Best-effort cache of redirect targets.

    Args:
        client: An async Redis client, or None to disable caching
        ttl: Lifetime of positive entries in seconds
        negative_ttl: Lifetime of not-found markers in seconds
        timeout: Upper bound for a single cache call in seconds
    """

    def __init__(
        self,
        client: Any = None,
        ttl: Optional[int] = None,
        negative_ttl: Optional[int] = None,
        timeout: Optional[float] = None,
        key_prefix: Optional[str] = None,
    ):
        self.client = client
        self.ttl = ttl if ttl is not None else settings.CACHE_TTL_SECONDS
        self.negative_ttl = negative_ttl if negative_ttl is not None else settings.NEGATIVE_CACHE_TTL_SECONDS
        self.timeout = timeout if timeout is not None else settings.CACHE_OPERATION_TIMEOUT
        self.key_prefix = key_prefix or settings.CACHE_KEY_PREFIX

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def key(self, domain: str, keyword: str) -> str:
        return f"{self.key_prefix}:{domain.lower()}:{keyword}"

    async def _call(self, operation: str, key: str, awaitable: Awaitable) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except CACHE_ERRORS as e:
            logger.warning(
                "Link cache {operation} failed, continuing without cache",
                operation=operation,
                key=key,
                error=repr(e),
            )
            return None

    async def get(self, domain: str, keyword: str) -> Optional[CacheEntry]:
        """Return the cached entry, or None on a miss or any cache failure."""
        if not self.enabled:
            return None
        key = self.key(domain, keyword)
        raw = await self._call("get", key, self.client.get(key))
        if raw is None:
            return None
        try:
            return CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable link cache entry", key=key, error=repr(e))
            return None

    def _ttl(self, entry: CacheEntry) -> int:
        return self.negative_ttl if entry.missing else self.ttl

    async def set(self, domain: str, keyword: str, entry: CacheEntry, ttl: Optional[int] = None) -> None:
        """
        Write an entry unconditionally.

        Used after a store write has committed, so the entry reflects the
        acknowledged state of the code.
        """
        if not self.enabled:
            return
        key = self.key(domain, keyword)
        ttl = ttl or self._ttl(entry)
        await self._call("set", key, self.client.set(key, entry.to_json(), ex=ttl))

    async def fill(self, domain: str, keyword: str, entry: CacheEntry) -> bool:
        """
        Store a lookup result unless the key is already present.

        A fill carries a store read that may predate a concurrent write; that
        write stores its own entry first, so the stale fill is dropped.

        Returns:
            True if the entry was stored
        """
        if not self.enabled:
            return False
        key = self.key(domain, keyword)
        stored = await self._call(
            "fill", key, self.client.set(key, entry.to_json(), ex=self._ttl(entry), nx=True)
        )
        return bool(stored)
