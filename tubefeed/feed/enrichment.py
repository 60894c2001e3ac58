"""Background backfill of channel avatars into stored subscriptions."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

FetchAvatar = Callable[[str], Awaitable[str | None]]


class ThumbnailStore(Protocol):
    async def update_subscription_thumbnails(self, thumbnails: dict[str, str]) -> bool: ...


class AvatarEnricher:
    """Scrapes channel avatars and writes them back to the subscription store.

    Runs detached from the feed request. Every channel is tried at once;
    channels whose page can't be fetched in time simply contribute nothing.
    """

    def __init__(self, store: ThumbnailStore, fetch_avatar: FetchAvatar):
        self.store = store
        self.fetch_avatar = fetch_avatar

    async def __call__(self, channel_ids: list[str]) -> None:
        try:
            await self.run(channel_ids)
        except Exception:
            logger.warning("Avatar enrichment failed", exc_info=True)

    async def run(self, channel_ids: list[str]) -> dict[str, str]:
        """
        Fetch avatars for ``channel_ids`` and persist the ones found.

        Returns:
            Mapping of channel id to avatar URL for the channels that had one
        """
        results = await asyncio.gather(
            *(self.fetch_avatar(channel_id) for channel_id in channel_ids),
            return_exceptions=True,
        )

        found: dict[str, str] = {}
        for channel_id, result in zip(channel_ids, results):
            if isinstance(result, BaseException):
                logger.debug(f"Avatar fetch failed for {channel_id}: {result!r}")
            elif result:
                found[channel_id] = result

        if found:
            changed = await self.store.update_subscription_thumbnails(found)
            logger.info(
                f"Found {len(found)} channel avatars"
                + (", subscriptions updated" if changed else ", nothing changed")
            )
        return found
