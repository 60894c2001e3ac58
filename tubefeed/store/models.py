"""Pydantic models for stored subscription lists."""

from datetime import datetime, timezone

from pydantic import Field

from tubefeed.rss.models import CamelModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(CamelModel):
    """A channel subscription inside a list."""

    id: str
    channel_id: str
    title: str
    url: str
    thumbnail: str | None = None
    added_at: datetime = Field(default_factory=utcnow)


class SubscriptionList(CamelModel):
    """A named group of subscriptions."""

    id: str
    name: str
    subscriptions: list[Subscription] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find(self, channel_id: str) -> Subscription | None:
        return next((s for s in self.subscriptions if s.channel_id == channel_id), None)

    def touch(self) -> None:
        self.updated_at = utcnow()


class SubscriptionListsData(CamelModel):
    """The whole subscription lists document."""

    lists: list[SubscriptionList]
    default_list_id: str
