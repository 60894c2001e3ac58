"""Feed aggregation endpoints for the tubefeed API."""

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from tubefeed.api.dependencies import get_aggregator, get_progress
from tubefeed.config import get_settings
from tubefeed.errors import StoreError
from tubefeed.feed import FeedAggregator, ProgressBroadcaster, ProgressSnapshot, parse_channel_ids

logger = logging.getLogger(__name__)

# YouTube channel IDs start with UC and are 24 characters (alphanumeric, -, _)
CHANNEL_ID_PATTERN = re.compile(r"^UC[A-Za-z0-9_-]{22}$")

router = APIRouter(prefix="/api/feed", tags=["feed"])
limiter = Limiter(key_func=get_remote_address)


@router.get("")
@limiter.limit("120/minute")
async def get_feed(
    request: Request,
    ids: str | None = Query(default=None, description="Comma-separated channel IDs"),
    refresh: bool = Query(default=False, description="Bypass cache and coalescing"),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    """
    Aggregated feed of the given channels, or of every subscribed channel.

    Near-simultaneous identical requests share one fetch round; a result is
    reused for about a second unless ``refresh=true`` is passed.

    Query Parameters:
        - ids: Optional comma-separated channel IDs
        - refresh: Force a new fetch round

    Returns:
        JSON response with ``items``, videos sorted newest first
    """
    channel_ids = parse_channel_ids(ids)

    # Validate ids before they end up in upstream URLs
    if channel_ids:
        invalid = [cid for cid in channel_ids if not CHANNEL_ID_PATTERN.match(cid)]
        if invalid:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid channel ID: {invalid[0]}. Must be a valid YouTube channel ID (UC...)",
            )

    try:
        videos = await aggregator.get_feed(channel_ids, force_refresh=refresh)
    except StoreError:
        logger.error("Failed to load channel list for feed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load feed")

    return {"items": [video.model_dump(mode="json", by_alias=True) for video in videos]}


async def progress_events(
    progress: ProgressBroadcaster,
    heartbeat_seconds: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    """
    Yield Server-Sent Events frames for every progress change.

    The current snapshot is sent first. A ``: keep-alive`` comment goes out
    whenever nothing happened for ``heartbeat_seconds``. The observer is
    removed when the stream ends, whether the client disconnected or the
    generator was closed.
    """
    queue: asyncio.Queue[ProgressSnapshot] = asyncio.Queue()
    unsubscribe = progress.subscribe(queue.put_nowait)
    try:
        while True:
            try:
                snapshot = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    break
                yield ": keep-alive\n\n"
                continue
            yield f"data: {snapshot.model_dump_json(by_alias=True)}\n\n"
    finally:
        unsubscribe()


@router.get("/progress")
async def stream_progress(
    request: Request,
    progress: ProgressBroadcaster = Depends(get_progress),
):
    """
    Live aggregation progress as a text/event-stream.

    Each event's data is a JSON snapshot with total, completed,
    currentChannel, currentChannelTitle and sessionId.
    """
    settings = get_settings()
    return StreamingResponse(
        progress_events(progress, settings.progress_heartbeat_seconds, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
