"""Channel feed fetching, parsing and caching."""

from .cache import FeedCache, MemoryFeedCache, RedisFeedCache, get_feed_cache
from .fetch import fetch_channel_feed
from .models import ChannelFeed, ChannelMeta, FeedVideo
from .parser import is_short, parse_channel_feed

__all__ = [
    "ChannelFeed",
    "ChannelMeta",
    "FeedCache",
    "FeedVideo",
    "MemoryFeedCache",
    "RedisFeedCache",
    "fetch_channel_feed",
    "get_feed_cache",
    "is_short",
    "parse_channel_feed",
]
