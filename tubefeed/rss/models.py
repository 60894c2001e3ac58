"""Pydantic models for channel feed entries."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys for the reader UI."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeedVideo(CamelModel):
    """Represents a single video entry from a channel feed."""

    id: str
    title: str
    channel_id: str
    channel_title: str
    published_at: datetime
    updated_at: datetime | None = None
    url: str
    thumbnail: str | None = None
    duration: str | None = None
    is_short: bool = False


class ChannelMeta(CamelModel):
    """Descriptive data for one channel, derived from its feed."""

    channel_id: str
    title: str
    thumbnail: str | None = None


class ChannelFeed(CamelModel):
    """A parsed channel feed: its videos plus channel metadata."""

    videos: list[FeedVideo]
    meta: ChannelMeta
