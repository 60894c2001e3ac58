"""Exceptions raised by the aggregation core and its collaborators."""


class FetchError(Exception):
    """An upstream channel feed could not be retrieved.

    Carries enough context to diagnose which channel failed and why:
    the channel id, the feed URL and the HTTP status (``None`` for
    transport errors such as timeouts).
    """

    def __init__(self, channel_id: str, url: str, status: int | None = None, reason: str = ""):
        self.channel_id = channel_id
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"HTTP {status}" if status is not None else reason or "network error"
        super().__init__(f"Failed to fetch feed for channel {channel_id}: {detail}")


class StoreError(Exception):
    """The subscription list store could not be read or written."""


class SubscriptionListError(ValueError):
    """A subscription list operation was rejected (unknown list, default list, ...)."""
