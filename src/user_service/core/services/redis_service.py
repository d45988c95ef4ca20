"""Redis connection service for managing Redis client lifecycle and health checks."""

from typing import Any

import redis.asyncio as redis_async
from loguru import logger
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError
from redis.retry import Retry

from src.user_service.runtime.config.config_data import RedisConfig
from src.user_service.runtime.context import get_config


class RedisService:
    """Owns the shared Redis client used by the table store and the event bus.

    Connection-level retries live here (socket errors, timeouts). They never
    retry a failed transaction: a ``WatchError`` reaches the store untouched.
    """

    def __init__(self, redis_config: RedisConfig | None = None):
        logger.info("Setting up Redis service")
        config = get_config()
        redis_config = redis_config or config.redis

        self._enabled = redis_config.enabled
        self._client: redis_async.Redis | None = None
        self._url = redis_config.url

        if not self._enabled:
            logger.info("Redis is disabled, service will not connect")
            return

        if not self._url:
            logger.warning("Redis URL not configured, service will not connect")
            self._enabled = False
            return

        logger.info(
            "Initializing Redis client with connection string: {}",
            redis_config.sanitized_connection_string,
        )

        retry = Retry(
            ExponentialBackoff(base=0.1, cap=2),
            retries=3,
        )

        self._client = redis_async.from_url(
            redis_config.connection_string,
            encoding="utf-8",
            decode_responses=redis_config.decode_responses,
            max_connections=redis_config.max_connections,
            socket_timeout=redis_config.socket_timeout,
            socket_connect_timeout=redis_config.socket_connect_timeout,
            socket_keepalive=True,
            health_check_interval=30,
            retry=retry,
            client_name=config.app.service_name,
        )

        logger.bind(
            max_connections=redis_config.max_connections,
            socket_timeout=redis_config.socket_timeout,
        ).info("Redis client initialized")

    def get_client(self) -> redis_async.Redis | None:
        """Get the Redis async client instance.

        Returns:
            Redis async client if enabled and connected, None otherwise.
        """
        if not self._enabled:
            logger.debug("Redis is disabled, returning None")
            return None

        return self._client

    async def health_check(self) -> bool:
        """Perform a health check on the Redis connection."""
        if not self._enabled or not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.bind(error_type=type(e).__name__, error_message=str(e)).error(
                "Redis health check failed"
            )
            return False

    async def get_info(self) -> dict[str, Any] | None:
        """Get Redis server information for monitoring."""
        if not self._enabled or not self._client:
            return None

        try:
            info = await self._client.info()
        except RedisError as e:
            logger.bind(error_type=type(e).__name__, error_message=str(e)).error(
                "Failed to get Redis info"
            )
            return None

        return {
            "version": info.get("redis_version"),
            "uptime_seconds": info.get("uptime_in_seconds"),
            "connected_clients": info.get("connected_clients"),
            "used_memory_human": info.get("used_memory_human"),
        }

    async def close(self) -> None:
        """Close the Redis connection and clean up resources."""
        if self._client:
            try:
                logger.info("Closing Redis connection")
                await self._client.aclose()
            except RedisError as e:
                logger.bind(error_type=type(e).__name__, error_message=str(e)).error(
                    "Error closing Redis connection"
                )
            finally:
                self._client = None

    @property
    def is_enabled(self) -> bool:
        """Check if Redis service is enabled."""
        return self._enabled

    @property
    def url(self) -> str | None:
        """Get the Redis connection URL."""
        return self._url
