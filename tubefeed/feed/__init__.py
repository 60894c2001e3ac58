"""Feed aggregation engine, progress tracking and background enrichment."""

from .aggregator import FeedAggregator, parse_channel_ids, sort_videos
from .enrichment import AvatarEnricher
from .progress import ProgressBroadcaster, ProgressSnapshot

__all__ = [
    "AvatarEnricher",
    "FeedAggregator",
    "ProgressBroadcaster",
    "ProgressSnapshot",
    "parse_channel_ids",
    "sort_videos",
]
