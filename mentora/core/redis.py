"""Redis connection backing the lesson cache."""

import logging
from typing import Optional

import redis.asyncio as redis

from mentora.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Process-wide async Redis connection, opened lazily on first use."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._instance is None:
            cls._instance = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
        return cls._instance

    @classmethod
    async def ping(cls) -> bool:
        """True if the cache answers; the app keeps working without it."""
        try:
            return bool(await cls.get_client().ping())
        except redis.RedisError as e:
            logger.warning(f"Lesson cache unreachable: {e}")
            return False

    @classmethod
    async def close(cls) -> None:
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None


async def get_redis() -> redis.Redis:
    """Dependency for the lesson-cache Redis client."""
    return RedisClient.get_client()
