"""Rate limiting backend with Redis failover to memory."""

import asyncio

from loguru import logger
from ratelimit import Rule
from ratelimit.backends import BaseBackend
from ratelimit.backends.redis import RedisBackend
from ratelimit.backends.simple import MemoryBackend
from redis.asyncio import StrictRedis
from redis.exceptions import RedisError

from shortlink.core.config import settings

REDIS_FAILURES = (RedisError, ConnectionError, OSError)


class ResilientRateLimitBackend(BaseBackend):
    """Rate limit backend that uses Redis and falls back to process memory.

    After ``max_redis_errors`` consecutive Redis failures, or when Redis is
    unreachable at startup, the backend uses memory; it tries Redis again at
    most every ``redis_check_interval`` seconds.
    """

    def __init__(self, redis_uri: str):
        self.redis_uri = redis_uri
        self.redis_client = None
        self.redis_backend = None
        self.memory_backend = MemoryBackend()
        self.using_redis = False
        self.last_redis_check = 0.0
        self.redis_check_interval = settings.RATE_LIMIT_REDIS_CHECK_INTERVAL
        self.redis_errors = 0
        self.max_redis_errors = settings.RATE_LIMIT_REDIS_MAX_ERRORS
        self._state_lock = asyncio.Lock()

    async def initialize(self) -> bool:
        """Connect to Redis, or stay on the memory backend.

        Returns:
            bool: True if the Redis backend is active
        """
        async with self._state_lock:
            try:
                self.redis_client = StrictRedis.from_url(self.redis_uri)
                await self.redis_client.ping()
                self.redis_backend = RedisBackend(self.redis_client)
                self.using_redis = True
                self.redis_errors = 0
                logger.info("Redis rate limiting backend initialized")
                return True
            except REDIS_FAILURES as e:
                logger.warning("Redis connection failed, using memory rate limit backend", error=str(e))
                self.using_redis = False
                self.last_redis_check = asyncio.get_running_loop().time()
                return False

    async def _maybe_return_to_redis(self) -> None:
        if self.using_redis or self.redis_client is None:
            return
        now = asyncio.get_running_loop().time()
        if now - self.last_redis_check < self.redis_check_interval:
            return
        async with self._state_lock:
            self.last_redis_check = now
            try:
                await self.redis_client.ping()
            except REDIS_FAILURES as e:
                logger.debug("Redis still unavailable for rate limiting", error=str(e))
                return
            if self.redis_backend is None:
                self.redis_backend = RedisBackend(self.redis_client)
            self.using_redis = True
            self.redis_errors = 0
            logger.info("Reconnected to Redis, switching back to Redis rate limit backend")

    async def _handle_redis_error(self, e: Exception) -> None:
        async with self._state_lock:
            self.redis_errors += 1
            if self.redis_errors >= self.max_redis_errors:
                logger.warning(
                    "Redis error threshold reached, switching to memory rate limit backend",
                    errors=self.redis_errors,
                )
                self.using_redis = False
                self.last_redis_check = asyncio.get_running_loop().time()
            else:
                logger.warning(
                    "Redis rate limit operation failed",
                    error=str(e),
                    errors=f"{self.redis_errors}/{self.max_redis_errors}",
                )

    async def retry_after(self, path: str, user: str, rule: Rule) -> int:
        """Seconds the user has to wait, 0 when the request is allowed."""
        await self._maybe_return_to_redis()
        if self.using_redis:
            try:
                return await self.redis_backend.retry_after(path, user, rule)
            except REDIS_FAILURES as e:
                await self._handle_redis_error(e)
        return await self.memory_backend.retry_after(path, user, rule)

    async def close(self) -> None:
        async with self._state_lock:
            if self.redis_client is not None:
                try:
                    await self.redis_client.aclose()
                except REDIS_FAILURES as e:
                    logger.error("Error closing rate limit Redis connection", error=str(e))
                self.redis_client = None
                self.redis_backend = None
                self.using_redis = False
