"""Subscription list store backed by a single JSON file.

Every operation is a read-modify-write of the whole document. Writes go to a
temporary file that is then renamed over the original, so readers never see
a half-written file. There is no cross-process locking: concurrent writers
race and the last write wins.
"""

import json
import logging
import os
import time
from pathlib import Path

from pydantic import ValidationError

from tubefeed.errors import StoreError, SubscriptionListError

from .models import Subscription, SubscriptionList, SubscriptionListsData

logger = logging.getLogger(__name__)

DEFAULT_LIST_ID = "default"
LEGACY_FILENAME = "subscriptions.json"


def _default_data(subscriptions: list | None = None) -> SubscriptionListsData:
    default_list = SubscriptionList.model_validate(
        {"id": DEFAULT_LIST_ID, "name": "Default", "subscriptions": subscriptions or []}
    )
    return SubscriptionListsData(lists=[default_list], default_list_id=DEFAULT_LIST_ID)


class SubscriptionListStore:
    """Named subscription lists persisted as ``subscription-lists.json``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    # -- document I/O -------------------------------------------------------

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Migrate from the single-list subscriptions.json if present
        subscriptions: list = []
        legacy = self.path.parent / LEGACY_FILENAME
        if legacy.exists():
            try:
                parsed = json.loads(legacy.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                parsed = None
            if isinstance(parsed, list):
                subscriptions = parsed
                logger.info(f"Migrating {len(parsed)} subscriptions from {legacy}")

        try:
            data = _default_data(subscriptions)
        except ValidationError:
            logger.warning(f"Ignoring unreadable legacy subscriptions in {legacy}")
            data = _default_data()
        self._write(data)

    def _write(self, data: SubscriptionListsData) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        payload = json.dumps(data.model_dump(mode="json", by_alias=True), indent=2)
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StoreError(f"Failed to write {self.path}: {e}") from e

    async def read_lists(self) -> SubscriptionListsData:
        """
        Load the lists document, creating it with a default list if needed.

        Returns:
            The stored lists

        Raises:
            StoreError: If the file can't be read or doesn't hold valid data
        """
        try:
            self._ensure_file()
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e

        if not raw.strip():
            logger.warning("Empty subscription lists file, creating defaults")
            data = _default_data()
            self._write(data)
            return data

        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                # Old format: a bare array of subscriptions
                logger.warning("Migrating subscription data from old format")
                return _default_data(parsed)
            return SubscriptionListsData.model_validate(parsed)
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to read subscription lists: {e}")
            raise StoreError(f"Corrupt subscription lists file {self.path}") from e

    async def write_lists(self, data: SubscriptionListsData) -> None:
        """Persist the whole lists document atomically."""
        self._write(data)

    # -- list operations ----------------------------------------------------

    @staticmethod
    def _get_list(data: SubscriptionListsData, list_id: str) -> SubscriptionList:
        for sub_list in data.lists:
            if sub_list.id == list_id:
                return sub_list
        logger.error(f"List not found: {list_id}", extra={"list_id": list_id})
        raise SubscriptionListError("List not found")

    async def create_list(self, name: str) -> SubscriptionList:
        data = await self.read_lists()
        new_list = SubscriptionList(id=str(time.time_ns() // 1_000_000), name=name)
        data.lists.append(new_list)
        await self.write_lists(data)
        return new_list

    async def rename_list(self, list_id: str, name: str) -> SubscriptionList:
        data = await self.read_lists()
        sub_list = self._get_list(data, list_id)
        sub_list.name = name
        sub_list.touch()
        await self.write_lists(data)
        return sub_list

    async def delete_list(self, list_id: str) -> None:
        data = await self.read_lists()
        if list_id == data.default_list_id:
            logger.error("Cannot delete default list", extra={"list_id": list_id})
            raise SubscriptionListError("Cannot delete default list")
        self._get_list(data, list_id)
        data.lists = [sub_list for sub_list in data.lists if sub_list.id != list_id]
        await self.write_lists(data)

    # -- subscription operations -------------------------------------------

    async def add_subscription(self, list_id: str, subscription: Subscription) -> SubscriptionList:
        """Add a subscription unless the list already holds that channel."""
        data = await self.read_lists()
        sub_list = self._get_list(data, list_id)
        if sub_list.find(subscription.channel_id) is None:
            sub_list.subscriptions.append(subscription)
            sub_list.touch()
            await self.write_lists(data)
        return sub_list

    async def remove_subscription(self, list_id: str, channel_id: str) -> None:
        data = await self.read_lists()
        sub_list = self._get_list(data, list_id)
        sub_list.subscriptions = [s for s in sub_list.subscriptions if s.channel_id != channel_id]
        sub_list.touch()
        await self.write_lists(data)

    async def clear_list(self, list_id: str) -> None:
        data = await self.read_lists()
        sub_list = self._get_list(data, list_id)
        sub_list.subscriptions = []
        sub_list.touch()
        await self.write_lists(data)

    async def clear_all(self) -> None:
        """Empty every list. The lists themselves are kept."""
        data = await self.read_lists()
        for sub_list in data.lists:
            sub_list.subscriptions = []
            sub_list.touch()
        await self.write_lists(data)

    async def move_subscription(self, from_list_id: str, to_list_id: str, channel_id: str) -> None:
        data = await self.read_lists()
        source = self._get_list(data, from_list_id)
        target = self._get_list(data, to_list_id)

        subscription = source.find(channel_id)
        if subscription is None:
            logger.error(
                f"Cannot move {channel_id}: not in source list",
                extra={"list_id": from_list_id, "channel_id": channel_id},
            )
            raise SubscriptionListError("Subscription not found")

        source.subscriptions = [s for s in source.subscriptions if s.channel_id != channel_id]
        source.touch()
        if target.find(channel_id) is None:
            target.subscriptions.append(subscription)
            target.touch()
        await self.write_lists(data)

    # -- aggregation collaborators -----------------------------------------

    async def list_channel_ids(self) -> list[str]:
        """Channel ids across all lists, deduplicated in first-seen order."""
        data = await self.read_lists()
        seen: dict[str, None] = {}
        for sub_list in data.lists:
            for subscription in sub_list.subscriptions:
                seen.setdefault(subscription.channel_id, None)
        return list(seen)

    async def update_subscription_thumbnails(self, thumbnails: dict[str, str]) -> bool:
        """
        Overwrite stored thumbnails with freshly scraped ones.

        Args:
            thumbnails: Mapping of channel id to avatar URL

        Returns:
            True if anything changed (and the file was rewritten)
        """
        data = await self.read_lists()
        changed = False
        for sub_list in data.lists:
            for subscription in sub_list.subscriptions:
                url = thumbnails.get(subscription.channel_id)
                if url and subscription.thumbnail != url:
                    subscription.thumbnail = url
                    changed = True
        if changed:
            await self.write_lists(data)
        return changed
