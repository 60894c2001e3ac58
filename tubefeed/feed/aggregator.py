"""Feed aggregation engine: concurrent fetch, merge and sort of channel feeds."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Protocol

from tubefeed.errors import FetchError
from tubefeed.rss.models import ChannelFeed, FeedVideo

from .progress import ProgressBroadcaster

logger = logging.getLogger(__name__)

FetchFeed = Callable[[str], Awaitable[ChannelFeed]]
Enricher = Callable[[list[str]], Awaitable[None]]

# Cache/coalescing key: the explicit channel set, or None for "all subscriptions"
FeedKey = tuple[str, ...] | None


class ChannelSource(Protocol):
    """Provider of the channel ids to aggregate when none are given."""

    async def list_channel_ids(self) -> list[str]: ...


def parse_channel_ids(raw: str | None) -> list[str] | None:
    """Split a comma-separated ``ids`` parameter; None/blank means "all"."""
    if raw is None:
        return None
    ids = [part.strip() for part in raw.split(",")]
    return [cid for cid in ids if cid] or None


def sort_videos(videos: list[FeedVideo]) -> list[FeedVideo]:
    """Sort videos newest first, in place.

    The sort is stable, so videos with identical timestamps keep the order in
    which they were collected.
    """
    videos.sort(key=lambda v: v.published_at, reverse=True)
    return videos


class FeedAggregator:
    """Merges the feeds of many channels into one timeline.

    A call to ``get_feed`` either returns a result cached within the last
    ``cache_ttl`` seconds, joins a round already in flight for the same
    channel set, or starts a new round. A round pulls channel ids from a
    shared FIFO queue with ``concurrency`` workers, reports each finished
    channel to the progress broadcaster, and fires avatar enrichment in the
    background once the merged result is ready.

    All state (cache slot, in-flight rounds, queue) is mutated between
    awaits on a single event loop, so no locking is needed.
    """

    def __init__(
        self,
        channel_source: ChannelSource,
        fetch_feed: FetchFeed,
        progress: ProgressBroadcaster,
        enricher: Enricher | None = None,
        concurrency: int = 4,
        cache_ttl: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._channel_source = channel_source
        self._fetch_feed = fetch_feed
        self._progress = progress
        self._enricher = enricher
        self._concurrency = concurrency
        self._cache_ttl = cache_ttl
        self._clock = clock

        self._cached: tuple[FeedKey, float, list[FeedVideo]] | None = None
        self._inflight: dict[FeedKey, asyncio.Task[list[FeedVideo]]] = {}
        self._background: set[asyncio.Task[None]] = set()

    async def get_feed(
        self,
        channel_ids: Sequence[str] | None = None,
        force_refresh: bool = False,
    ) -> list[FeedVideo]:
        """
        Return the merged feed for ``channel_ids`` (all subscriptions if None).

        Args:
            channel_ids: Explicit channels to aggregate
            force_refresh: Skip the response cache and in-flight coalescing

        Returns:
            Videos sorted newest first

        Raises:
            StoreError: If the subscription store can't provide channel ids
        """
        key: FeedKey = tuple(dict.fromkeys(channel_ids)) if channel_ids else None

        if not force_refresh:
            if (cached := self._cached_result(key)) is not None:
                logger.debug("Serving feed from response cache")
                return cached
            if (inflight := self._inflight.get(key)) is not None:
                logger.debug("Joining in-flight aggregation round")
                return await asyncio.shield(inflight)

        task = asyncio.ensure_future(self._run_round(key))
        self._inflight[key] = task

        def _clear_inflight(done: asyncio.Task) -> None:
            if self._inflight.get(key) is done:
                del self._inflight[key]
            # Mark the error retrieved even if every caller was cancelled
            if not done.cancelled():
                done.exception()

        task.add_done_callback(_clear_inflight)
        # Shielded: a caller going away must not cancel the round for others
        return await asyncio.shield(task)

    @property
    def in_flight(self) -> bool:
        return bool(self._inflight)

    def invalidate(self) -> None:
        """Drop the cached response."""
        self._cached = None

    async def drain_background(self) -> None:
        """Wait for outstanding background enrichment tasks."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _cached_result(self, key: FeedKey) -> list[FeedVideo] | None:
        if self._cached is None:
            return None
        cached_key, stored_at, result = self._cached
        if cached_key != key or self._clock() - stored_at >= self._cache_ttl:
            return None
        return result

    async def _resolve_channel_ids(self, key: FeedKey) -> list[str]:
        if key is not None:
            return list(key)
        return list(dict.fromkeys(await self._channel_source.list_channel_ids()))

    async def _run_round(self, key: FeedKey) -> list[FeedVideo]:
        channel_ids = await self._resolve_channel_ids(key)
        if not channel_ids:
            return []

        session_id = self._progress.init(len(channel_ids))
        started = self._clock()
        queue = deque(channel_ids)
        items: list[FeedVideo] = []
        failures = 0

        async def worker() -> None:
            nonlocal failures
            while queue:
                channel_id = queue.popleft()
                try:
                    feed = await self._fetch_feed(channel_id)
                except FetchError as e:
                    failures += 1
                    logger.warning(
                        f"Failed to load feed for {channel_id}: {e}",
                        extra={"channel_id": channel_id, "status": e.status},
                    )
                    self._progress.update(channel_id, f"[Error] {channel_id}", session_id)
                    continue
                except Exception:
                    failures += 1
                    logger.error(
                        f"Unexpected error loading feed for {channel_id}",
                        exc_info=True,
                        extra={"channel_id": channel_id},
                    )
                    self._progress.update(channel_id, f"[Error] {channel_id}", session_id)
                    continue

                items.extend(self._annotate(feed, channel_id))
                self._progress.update(channel_id, feed.meta.title or channel_id, session_id)

        workers = min(self._concurrency, len(channel_ids))
        await asyncio.gather(*(worker() for _ in range(workers)))

        result = sort_videos(items)
        # A round superseded by a forced refresh must not replace the newer result
        if self._inflight.get(key) is asyncio.current_task():
            self._cached = (key, self._clock(), result)
        logger.info(
            f"Aggregated {len(result)} videos from {len(channel_ids)} channels "
            f"({failures} failed) in {self._clock() - started:.2f}s",
            extra={"session_id": session_id},
        )

        if self._enricher is not None:
            self._spawn_enrichment(channel_ids)

        return result

    @staticmethod
    def _annotate(feed: ChannelFeed, channel_id: str) -> Iterable[FeedVideo]:
        """Fill per-video gaps from the channel metadata."""
        meta = feed.meta
        for video in feed.videos:
            yield video.model_copy(
                update={
                    "channel_title": video.channel_title or meta.title,
                    "thumbnail": video.thumbnail or meta.thumbnail,
                    "channel_id": video.channel_id or channel_id,
                }
            )

    def _spawn_enrichment(self, channel_ids: list[str]) -> None:
        task = asyncio.create_task(self._enrich(channel_ids))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _enrich(self, channel_ids: list[str]) -> None:
        try:
            await self._enricher(channel_ids)
        except Exception:
            logger.warning("Background enrichment failed", exc_info=True)
