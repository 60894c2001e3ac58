"""Retrieval of channel feeds from the YouTube feed endpoint."""

import logging
from urllib.parse import quote

import httpx

from tubefeed.config import get_settings
from tubefeed.errors import FetchError

from .cache import FeedCache
from .models import ChannelFeed
from .parser import parse_channel_feed

logger = logging.getLogger(__name__)

FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"


def feed_url(channel_id: str) -> str:
    """Build the public Atom feed URL for a channel."""
    return FEED_URL.format(channel_id=quote(channel_id, safe=""))


async def fetch_channel_feed(channel_id: str, cache: FeedCache | None = None) -> ChannelFeed:
    """
    Fetch and parse a YouTube channel's feed.

    First checks the channel feed cache, if one is given. On a miss, fetches
    the feed endpoint, parses the XML and caches non-empty results.

    Args:
        channel_id: YouTube channel ID
        cache: Optional per-channel feed cache

    Returns:
        ChannelFeed with the channel's recent videos and metadata

    Raises:
        FetchError: If the request fails or returns a non-success status
    """
    if cache is not None and (cached := await cache.get(channel_id)):
        return cached

    url = feed_url(channel_id)
    timeout = get_settings().feed_fetch_timeout_seconds

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        logger.error(
            f"Failed to fetch channel feed {channel_id}: {e!r}",
            extra={"channel_id": channel_id, "url": url},
        )
        raise FetchError(channel_id, url, reason=str(e) or type(e).__name__) from e

    if not response.is_success:
        logger.error(
            f"Failed to fetch channel feed {channel_id}: HTTP {response.status_code}",
            extra={"channel_id": channel_id, "url": url, "status": response.status_code},
        )
        raise FetchError(channel_id, url, status=response.status_code)

    feed = parse_channel_feed(response.text, channel_id)

    # Malformed XML degrades to an empty feed; don't pin that in the cache
    if cache is not None and feed.videos:
        await cache.set(channel_id, feed)

    return feed
