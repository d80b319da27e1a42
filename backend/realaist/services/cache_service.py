"""
Redis caching for analytics responses.

Provides:
- Connection management for the shared Redis pool
- AnalyticsCache, an injectable get/set/invalidate cache

Cache failures are logged and treated as misses; they never fail a request.
"""

import json
from datetime import timedelta
from typing import Any, Optional, Union

import redis.asyncio as redis
import structlog

from realaist.config import settings

logger = structlog.get_logger()

# Global Redis client instance
_redis_client: Optional[redis.Redis] = None


# =============================================================================
# Connection Management
# =============================================================================


async def init_redis() -> None:
    """
    Initialize Redis connection pool.

    Should be called during application startup.
    """
    global _redis_client

    _redis_client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )

    try:
        await _redis_client.ping()
        logger.info("redis_connected", url=settings.redis_url.split("@")[-1])
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))
        raise


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_client

    if _redis_client:
        await _redis_client.close()
        _redis_client = None
        logger.info("redis_disconnected")


def get_redis_client() -> Optional[redis.Redis]:
    """The shared client, or None before startup."""
    return _redis_client


# =============================================================================
# Analytics Cache
# =============================================================================


class AnalyticsCache:
    """
    Cache for campaign analytics keyed by external campaign id and date range.

    Instances are passed explicitly to the analytics service so tests can
    supply their own backend.
    """

    PREFIX = "analytics"

    def __init__(
        self,
        client: Optional[redis.Redis],
        ttl: Union[int, timedelta, None] = None,
    ):
        self.client = client
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        self.ttl = ttl if ttl is not None else settings.analytics_cache_ttl

    @classmethod
    def key(cls, campaign_id: str, start_date: Any = None, end_date: Any = None) -> str:
        return ":".join([cls.PREFIX, str(campaign_id), str(start_date or "-"), str(end_date or "-")])

    async def get(self, key: str) -> Optional[dict]:
        if self.client is None:
            return None
        try:
            value = await self.client.get(key)
            if value is None:
                return None
            return json.loads(value)
        except Exception as e:
            logger.warning("cache_get_error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: dict) -> bool:
        if self.client is None:
            return False
        try:
            serialized = json.dumps(value, default=str)
            if self.ttl:
                await self.client.setex(key, self.ttl, serialized)
            else:
                await self.client.set(key, serialized)
            return True
        except Exception as e:
            logger.warning("cache_set_error", key=key, error=str(e))
            return False

    async def invalidate(self, campaign_id: str) -> int:
        """
        Drop every cached range for a campaign.

        Returns:
            Number of keys deleted
        """
        if self.client is None:
            return 0
        pattern = f"{self.PREFIX}:{campaign_id}:*"
        try:
            deleted = 0
            async for key in self.client.scan_iter(match=pattern, count=100):
                await self.client.delete(key)
                deleted += 1
            if deleted > 0:
                logger.info("cache_pattern_deleted", pattern=pattern, count=deleted)
            return deleted
        except Exception as e:
            logger.warning("cache_delete_pattern_error", pattern=pattern, error=str(e))
            return 0


def get_analytics_cache() -> AnalyticsCache:
    """FastAPI dependency for the shared analytics cache."""
    return AnalyticsCache(get_redis_client())
