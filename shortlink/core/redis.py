"""
Redis client management module.

This module provides a Redis client manager with connection pooling
and error handling for async Redis operations.
"""

from typing import Optional

import redis.asyncio as redis
from loguru import logger
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from shortlink.core.config import settings


class RedisClientManager:
    """
    Async Redis client manager with connection pooling.

    A single manager (and pool) is shared by the redirect cache,
    the rate limiter and the health checks.
    """

    _instance: Optional["RedisClientManager"] = None
    _connection_pool: Optional[ConnectionPool] = None
    _client: Optional[redis.Redis] = None
    _is_connected: bool = False

    def __new__(cls):
        """Singleton pattern to ensure only one Redis client manager exists."""
        if cls._instance is None:
            cls._instance = super(RedisClientManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self) -> None:
        """Initialize the Redis connection pool."""
        try:
            self._connection_pool = redis.ConnectionPool.from_url(
                settings.REDIS_URI,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_connect_timeout=1.0,
            )
            logger.debug(f"Redis connection pool created for {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        except (RedisError, ValueError) as e:
            logger.error(f"Failed to create Redis connection pool: {str(e)}")
            self._connection_pool = None

    @property
    def is_enabled(self) -> bool:
        """Whether any Redis-backed feature is switched on."""
        return settings.CACHE_ENABLED or settings.RATE_LIMIT_ENABLED

    async def get_client(self) -> redis.Redis:
        """
        Get a Redis client instance from the connection pool.

        Returns:
            redis.Redis: Redis client instance

        Raises:
            ConnectionError: If no connection pool could be created
        """
        if self._client is None:
            if self._connection_pool is None:
                self._initialize()

            if self._connection_pool:
                self._client = redis.Redis(connection_pool=self._connection_pool)
            else:
                raise ConnectionError("Redis connection pool is not available")

        return self._client

    async def ping(self) -> bool:
        """
        Test the Redis connection with a ping command.

        Returns:
            bool: True if successful, False otherwise
        """
        try:
            client = await self.get_client()
            result = await client.ping()
            self._is_connected = True
            return result
        except (RedisError, ConnectionError, OSError) as e:
            logger.error(f"Redis ping failed: {str(e)}")
            self._is_connected = False
            return False

    async def close(self) -> None:
        """Close the Redis client and connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

        if self._connection_pool:
            await self._connection_pool.disconnect()
            self._connection_pool = None

        self._is_connected = False
        logger.debug("Redis connections closed")


# Singleton instance
redis_manager = RedisClientManager()
