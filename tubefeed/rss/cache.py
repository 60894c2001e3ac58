"""Short-lived per-channel feed cache (in-process memory or Redis)."""

import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from pydantic import ValidationError
from redis.asyncio import Redis

from tubefeed.config import Settings

from .models import ChannelFeed

logger = logging.getLogger(__name__)


class FeedCache(ABC):
    """Abstract cache of parsed channel feeds."""

    @abstractmethod
    async def get(self, channel_id: str) -> ChannelFeed | None:
        """
        Look up a cached feed.

        Args:
            channel_id: YouTube channel ID

        Returns:
            The cached ChannelFeed, or None on a miss or expired entry
        """

    @abstractmethod
    async def set(self, channel_id: str, feed: ChannelFeed) -> None:
        """
        Store a freshly parsed feed.

        Args:
            channel_id: YouTube channel ID
            feed: Parsed feed to cache
        """


class MemoryFeedCache(FeedCache):
    """In-process cache; entries expire after a fixed TTL."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, ChannelFeed]] = {}

    async def get(self, channel_id: str) -> ChannelFeed | None:
        entry = self._entries.get(channel_id)
        if entry is None:
            return None
        expires_at, feed = entry
        if self._clock() >= expires_at:
            del self._entries[channel_id]
            return None
        return feed

    async def set(self, channel_id: str, feed: ChannelFeed) -> None:
        self._entries[channel_id] = (self._clock() + self.ttl_seconds, feed)


class RedisFeedCache(FeedCache):
    """Redis-backed cache; TTL gets a random splay so channels expire unevenly."""

    def __init__(self, redis: Redis, ttl_seconds: int, splay_max: int = 0):
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.splay_max = splay_max

    @staticmethod
    def _key(channel_id: str) -> str:
        """Generate Redis key for a channel's feed cache."""
        return f"tubefeed:feed:{channel_id}"

    async def get(self, channel_id: str) -> ChannelFeed | None:
        cached = await self.redis.get(self._key(channel_id))
        if not cached:
            return None
        try:
            return ChannelFeed.model_validate_json(cached)
        except ValidationError:
            logger.warning(f"Discarding unreadable cached feed for {channel_id}")
            return None

    async def set(self, channel_id: str, feed: ChannelFeed) -> None:
        ttl = self.ttl_seconds + random.randint(0, self.splay_max)
        await self.redis.setex(self._key(channel_id), ttl, feed.model_dump_json(by_alias=True))


def get_feed_cache(settings: Settings, redis: Redis | None = None) -> FeedCache | None:
    """
    Factory function to get the configured channel feed cache.

    Args:
        settings: Application settings
        redis: Redis client, required for the redis backend

    Returns:
        Configured cache instance, or None when caching is disabled
    """
    if settings.channel_feed_ttl_seconds <= 0:
        return None
    if settings.feed_cache_backend == "memory":
        return MemoryFeedCache(settings.channel_feed_ttl_seconds)
    elif settings.feed_cache_backend == "redis":
        if redis is None:
            raise ValueError("A Redis client is required when using the redis feed cache")
        return RedisFeedCache(
            redis, settings.channel_feed_ttl_seconds, settings.channel_feed_ttl_splay_max
        )
    else:
        raise ValueError(f"Unknown feed cache backend: {settings.feed_cache_backend}")
