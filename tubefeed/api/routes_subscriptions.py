"""Subscription list management endpoints for the tubefeed API."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from tubefeed.api.dependencies import get_fetch_feed, get_store
from tubefeed.errors import FetchError, StoreError, SubscriptionListError
from tubefeed.feed.aggregator import FetchFeed
from tubefeed.rss.models import CamelModel
from tubefeed.store import Subscription, SubscriptionListStore
from tubefeed.youtube import resolve_channel_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription-lists", tags=["subscriptions"])
limiter = Limiter(key_func=get_remote_address)

CHANNEL_URL = "https://www.youtube.com/channel/{channel_id}"


class ListNameRequest(CamelModel):
    """Request model for creating or renaming a list."""

    name: str = Field(min_length=1, max_length=100)


class AddSubscriptionRequest(CamelModel):
    """Request model for adding a channel to a list."""

    input: str = Field(min_length=1, description="Channel URL, @handle or channel ID")


class MoveSubscriptionRequest(CamelModel):
    """Request model for moving a subscription to another list."""

    to_list_id: str


def _store_unavailable(action: str) -> HTTPException:
    logger.error(f"Subscription store failure during {action}", exc_info=True)
    return HTTPException(status_code=500, detail="An error occurred accessing subscriptions")


async def _lists_response(store: SubscriptionListStore) -> dict:
    data = await store.read_lists()
    return data.model_dump(mode="json", by_alias=True)


@router.get("")
@limiter.limit("60/minute")
async def list_subscription_lists(
    request: Request,
    store: SubscriptionListStore = Depends(get_store),
):
    """
    All subscription lists with their subscriptions.

    Returns:
        ``{"lists": [...], "defaultListId": "..."}``
    """
    try:
        return await _lists_response(store)
    except StoreError:
        raise _store_unavailable("list")


@router.post("", status_code=201)
@limiter.limit("30/minute")
async def create_subscription_list(
    request: Request,
    body: ListNameRequest,
    store: SubscriptionListStore = Depends(get_store),
):
    """Create an empty, named list."""
    try:
        new_list = await store.create_list(body.name.strip())
    except StoreError:
        raise _store_unavailable("create")
    return new_list.model_dump(mode="json", by_alias=True)


# Registered before "/{list_id}" so "subscriptions" isn't taken as a list id
@router.delete("/subscriptions")
@limiter.limit("5/minute")
async def clear_all_subscriptions(
    request: Request,
    store: SubscriptionListStore = Depends(get_store),
):
    """Remove every subscription from every list, keeping the lists."""
    try:
        await store.clear_all()
        return await _lists_response(store)
    except StoreError:
        raise _store_unavailable("clear all")


@router.patch("/{list_id}")
@limiter.limit("30/minute")
async def rename_subscription_list(
    request: Request,
    list_id: str,
    body: ListNameRequest,
    store: SubscriptionListStore = Depends(get_store),
):
    """Rename a list."""
    try:
        await store.rename_list(list_id, body.name.strip())
        return await _lists_response(store)
    except SubscriptionListError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _store_unavailable("rename")


@router.delete("/{list_id}")
@limiter.limit("30/minute")
async def delete_subscription_list(
    request: Request,
    list_id: str,
    store: SubscriptionListStore = Depends(get_store),
):
    """Delete a list. The default list can't be deleted."""
    try:
        await store.delete_list(list_id)
        return await _lists_response(store)
    except SubscriptionListError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _store_unavailable("delete")


@router.post("/{list_id}/subscriptions", status_code=201)
@limiter.limit("30/minute")
async def add_subscription(
    request: Request,
    list_id: str,
    body: AddSubscriptionRequest,
    store: SubscriptionListStore = Depends(get_store),
    fetch_feed: FetchFeed = Depends(get_fetch_feed),
):
    """
    Subscribe a list to a channel given as URL, @handle or channel ID.

    The channel's feed is fetched once to pick up its title and thumbnail.

    Returns:
        The updated list

    Raises:
        HTTPException: 400 if the channel can't be identified or the list is
            unknown, 502 if the channel's feed can't be fetched
    """
    channel_id = await resolve_channel_id(body.input)
    if not channel_id:
        logger.warning(f"Could not resolve channel ID from input {body.input!r}")
        raise HTTPException(status_code=400, detail="Could not parse channel ID from input")

    try:
        feed = await fetch_feed(channel_id)
    except FetchError as e:
        raise HTTPException(
            status_code=502, detail=f"Failed to fetch feed for channel {channel_id}"
        ) from e

    subscription = Subscription(
        id=channel_id,
        channel_id=channel_id,
        title=feed.meta.title or channel_id,
        url=CHANNEL_URL.format(channel_id=channel_id),
        thumbnail=feed.meta.thumbnail,
    )

    try:
        updated = await store.add_subscription(list_id, subscription)
    except SubscriptionListError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _store_unavailable("add")

    return updated.model_dump(mode="json", by_alias=True)


@router.delete("/{list_id}/subscriptions")
@limiter.limit("10/minute")
async def clear_subscriptions(
    request: Request,
    list_id: str,
    store: SubscriptionListStore = Depends(get_store),
):
    """Remove every subscription from a list."""
    try:
        await store.clear_list(list_id)
        return await _lists_response(store)
    except SubscriptionListError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _store_unavailable("clear")


@router.delete("/{list_id}/subscriptions/{channel_id}")
@limiter.limit("60/minute")
async def remove_subscription(
    request: Request,
    list_id: str,
    channel_id: str,
    store: SubscriptionListStore = Depends(get_store),
):
    """Remove one channel from a list."""
    try:
        await store.remove_subscription(list_id, channel_id)
        return await _lists_response(store)
    except SubscriptionListError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _store_unavailable("remove")


@router.post("/{list_id}/subscriptions/{channel_id}/move")
@limiter.limit("60/minute")
async def move_subscription(
    request: Request,
    list_id: str,
    channel_id: str,
    body: MoveSubscriptionRequest,
    store: SubscriptionListStore = Depends(get_store),
):
    """Move a channel from one list to another."""
    try:
        await store.move_subscription(list_id, body.to_list_id, channel_id)
        return await _lists_response(store)
    except SubscriptionListError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _store_unavailable("move")
