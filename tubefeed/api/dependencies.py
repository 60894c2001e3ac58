"""FastAPI dependencies for API routers.

The aggregation engine, progress broadcaster and store are process-wide
singletons, created lazily on first use. Tests replace them through
``app.dependency_overrides``.
"""

from functools import partial

from redis.asyncio import Redis

from tubefeed.config import get_settings
from tubefeed.feed import AvatarEnricher, FeedAggregator, ProgressBroadcaster
from tubefeed.feed.aggregator import FetchFeed
from tubefeed.rss import FeedCache, fetch_channel_feed, get_feed_cache
from tubefeed.store import SubscriptionListStore
from tubefeed.youtube import fetch_channel_avatar

_redis_client: Redis | None = None
_feed_cache: FeedCache | None = None
_progress: ProgressBroadcaster | None = None
_store: SubscriptionListStore | None = None
_aggregator: FeedAggregator | None = None


def get_redis() -> Redis:
    """Get the shared async Redis client (redis feed cache backend only)."""
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )
    return _redis_client


def get_channel_feed_cache() -> FeedCache | None:
    """Get the configured per-channel feed cache, or None if disabled."""
    global _feed_cache

    if _feed_cache is None:
        settings = get_settings()
        redis = get_redis() if settings.feed_cache_backend == "redis" else None
        _feed_cache = get_feed_cache(settings, redis)
    return _feed_cache


def get_fetch_feed() -> FetchFeed:
    """Dependency providing the channel feed fetcher."""
    return partial(fetch_channel_feed, cache=get_channel_feed_cache())


def get_progress() -> ProgressBroadcaster:
    """Dependency providing the process-wide progress broadcaster."""
    global _progress

    if _progress is None:
        _progress = ProgressBroadcaster()
    return _progress


def get_store() -> SubscriptionListStore:
    """Dependency providing the subscription list store."""
    global _store

    if _store is None:
        _store = SubscriptionListStore(get_settings().subscription_lists_file)
    return _store


def get_aggregator() -> FeedAggregator:
    """Dependency providing the process-wide feed aggregator."""
    global _aggregator

    if _aggregator is None:
        settings = get_settings()
        store = get_store()
        _aggregator = FeedAggregator(
            channel_source=store,
            fetch_feed=get_fetch_feed(),
            progress=get_progress(),
            enricher=AvatarEnricher(
                store,
                partial(fetch_channel_avatar, timeout=settings.avatar_fetch_timeout_seconds),
            ),
            concurrency=settings.feed_concurrency,
            cache_ttl=settings.feed_response_cache_ttl_seconds,
        )
    return _aggregator


async def shutdown_dependencies() -> None:
    """Finish background work and release connections."""
    global _redis_client, _aggregator

    if _aggregator is not None:
        await _aggregator.drain_background()
        _aggregator = None
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
