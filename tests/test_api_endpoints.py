"""Tests for API endpoints."""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from tubefeed.api import feed_router, health_router, subscriptions_router
from tubefeed.api.dependencies import get_aggregator, get_fetch_feed, get_progress, get_store
from tubefeed.api.routes_feed import progress_events
from tubefeed.errors import FetchError, StoreError
from tubefeed.feed import FeedAggregator, ProgressBroadcaster
from tubefeed.rss.models import ChannelFeed, ChannelMeta, FeedVideo
from tubefeed.store import DEFAULT_LIST_ID, SubscriptionListStore

CHANNEL_ID = "UCuAXFkgsw1L7xaCfnd5JJOw"
OTHER_CHANNEL_ID = "UC_x5XG1OV2P6uZZ5FSM9Ttw"


@pytest.fixture
def store(tmp_path):
    return SubscriptionListStore(tmp_path / "subscription-lists.json")


@pytest.fixture
def mock_aggregator():
    aggregator = MagicMock(spec=FeedAggregator)
    aggregator.get_feed = AsyncMock(return_value=[])
    return aggregator


@pytest.fixture
def mock_fetch_feed():
    return AsyncMock(
        return_value=ChannelFeed(
            videos=[],
            meta=ChannelMeta(
                channel_id=CHANNEL_ID,
                title="Rick Astley",
                thumbnail="https://yt3.ggpht.com/rick.jpg",
            ),
        )
    )


@pytest_asyncio.fixture
async def test_app(store, mock_aggregator, mock_fetch_feed):
    """Create a test FastAPI app with all routers."""
    app = FastAPI()
    app.include_router(health_router)
    app.include_router(subscriptions_router)
    app.include_router(feed_router)

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_aggregator] = lambda: mock_aggregator
    app.dependency_overrides[get_fetch_feed] = lambda: mock_fetch_feed
    app.dependency_overrides[get_progress] = ProgressBroadcaster
    return app


@pytest_asyncio.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# Health check tests


@pytest.mark.asyncio
async def test_healthz_returns_200(client):
    """Test /healthz endpoint returns 200 with ok status."""
    response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_readyz_returns_200(client):
    """Test /readyz endpoint returns 200 when the store is readable."""
    response = await client.get("/readyz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_readyz_returns_503_when_store_unreadable(client, store):
    """Test /readyz reports a corrupt subscription file."""
    store.path.write_text("{broken")

    response = await client.get("/readyz")

    assert response.status_code == 503


# /api/feed tests


@pytest.mark.asyncio
async def test_feed_returns_camel_case_items(client, mock_aggregator):
    """Test /api/feed serializes videos with camelCase keys."""
    mock_aggregator.get_feed.return_value = [
        FeedVideo(
            id="dQw4w9WgXcQ",
            title="Never Gonna Give You Up",
            channel_id=CHANNEL_ID,
            channel_title="Rick Astley",
            published_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
            url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            thumbnail="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        )
    ]

    response = await client.get("/api/feed")

    assert response.status_code == 200
    item = response.json()["items"][0]
    assert item["id"] == "dQw4w9WgXcQ"
    assert item["channelId"] == CHANNEL_ID
    assert item["channelTitle"] == "Rick Astley"
    assert item["publishedAt"].startswith("2024-01-15T10:30:00")
    assert item["isShort"] is False
    mock_aggregator.get_feed.assert_called_once_with(None, force_refresh=False)


@pytest.mark.asyncio
async def test_feed_passes_ids_and_refresh(client, mock_aggregator):
    """Test ids are split and refresh is forwarded."""
    response = await client.get(
        "/api/feed", params={"ids": f"{CHANNEL_ID}, {OTHER_CHANNEL_ID}", "refresh": "true"}
    )

    assert response.status_code == 200
    assert response.json() == {"items": []}
    mock_aggregator.get_feed.assert_called_once_with(
        [CHANNEL_ID, OTHER_CHANNEL_ID], force_refresh=True
    )


@pytest.mark.asyncio
async def test_feed_blank_ids_means_all_subscriptions(client, mock_aggregator):
    response = await client.get("/api/feed", params={"ids": " , "})

    assert response.status_code == 200
    mock_aggregator.get_feed.assert_called_once_with(None, force_refresh=False)


@pytest.mark.asyncio
async def test_feed_rejects_invalid_channel_id(client, mock_aggregator):
    """Test /api/feed validates channel ids before fetching."""
    response = await client.get("/api/feed", params={"ids": f"{CHANNEL_ID},not-a-channel"})

    assert response.status_code == 400
    assert "not-a-channel" in response.json()["detail"]
    mock_aggregator.get_feed.assert_not_called()


@pytest.mark.asyncio
async def test_feed_store_failure_returns_500(client, mock_aggregator):
    mock_aggregator.get_feed.side_effect = StoreError("unreadable")

    response = await client.get("/api/feed")

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to load feed"


# /api/subscription-lists tests


@pytest.mark.asyncio
async def test_list_subscription_lists_returns_default(client):
    response = await client.get("/api/subscription-lists")

    assert response.status_code == 200
    data = response.json()
    assert data["defaultListId"] == DEFAULT_LIST_ID
    assert data["lists"][0]["id"] == DEFAULT_LIST_ID
    assert data["lists"][0]["subscriptions"] == []


@pytest.mark.asyncio
async def test_create_rename_and_delete_list(client):
    created = await client.post("/api/subscription-lists", json={"name": "  Music  "})
    assert created.status_code == 201
    list_id = created.json()["id"]
    assert created.json()["name"] == "Music"

    renamed = await client.patch(f"/api/subscription-lists/{list_id}", json={"name": "Tunes"})
    assert renamed.status_code == 200
    names = {sub_list["id"]: sub_list["name"] for sub_list in renamed.json()["lists"]}
    assert names[list_id] == "Tunes"

    deleted = await client.delete(f"/api/subscription-lists/{list_id}")
    assert deleted.status_code == 200
    assert [sub_list["id"] for sub_list in deleted.json()["lists"]] == [DEFAULT_LIST_ID]


@pytest.mark.asyncio
async def test_create_list_requires_name(client):
    response = await client.post("/api/subscription-lists", json={"name": ""})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_default_list_rejected(client):
    response = await client.delete(f"/api/subscription-lists/{DEFAULT_LIST_ID}")

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete default list"


@pytest.mark.asyncio
async def test_add_subscription_resolves_and_uses_feed_meta(client, mock_fetch_feed):
    """Test adding a channel by URL stores the feed's title and thumbnail."""
    with patch(
        "tubefeed.api.routes_subscriptions.resolve_channel_id",
        AsyncMock(return_value=CHANNEL_ID),
    ) as resolve:
        response = await client.post(
            f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions",
            json={"input": "https://www.youtube.com/@RickAstleyYT"},
        )

    assert response.status_code == 201
    resolve.assert_called_once_with("https://www.youtube.com/@RickAstleyYT")
    mock_fetch_feed.assert_called_once_with(CHANNEL_ID)
    subscription = response.json()["subscriptions"][0]
    assert subscription["channelId"] == CHANNEL_ID
    assert subscription["title"] == "Rick Astley"
    assert subscription["thumbnail"] == "https://yt3.ggpht.com/rick.jpg"
    assert subscription["url"] == f"https://www.youtube.com/channel/{CHANNEL_ID}"


@pytest.mark.asyncio
async def test_add_subscription_unresolvable_input(client, mock_fetch_feed):
    with patch(
        "tubefeed.api.routes_subscriptions.resolve_channel_id", AsyncMock(return_value=None)
    ):
        response = await client.post(
            f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions",
            json={"input": "definitely not a channel"},
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "Could not parse channel ID from input"
    mock_fetch_feed.assert_not_called()


@pytest.mark.asyncio
async def test_add_subscription_feed_failure_returns_502(client, mock_fetch_feed, store):
    mock_fetch_feed.side_effect = FetchError(CHANNEL_ID, "https://example.test", status=404)

    with patch(
        "tubefeed.api.routes_subscriptions.resolve_channel_id",
        AsyncMock(return_value=CHANNEL_ID),
    ):
        response = await client.post(
            f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions",
            json={"input": CHANNEL_ID},
        )

    assert response.status_code == 502
    assert await store.list_channel_ids() == []


@pytest.mark.asyncio
async def test_add_subscription_unknown_list(client):
    with patch(
        "tubefeed.api.routes_subscriptions.resolve_channel_id",
        AsyncMock(return_value=CHANNEL_ID),
    ):
        response = await client.post(
            "/api/subscription-lists/missing/subscriptions", json={"input": CHANNEL_ID}
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "List not found"


@pytest.mark.asyncio
async def test_remove_move_and_clear_subscriptions(client, store):
    with patch(
        "tubefeed.api.routes_subscriptions.resolve_channel_id",
        AsyncMock(side_effect=[CHANNEL_ID, OTHER_CHANNEL_ID]),
    ):
        for value in (CHANNEL_ID, OTHER_CHANNEL_ID):
            await client.post(
                f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions", json={"input": value}
            )
    target = (await client.post("/api/subscription-lists", json={"name": "Later"})).json()

    moved = await client.post(
        f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions/{CHANNEL_ID}/move",
        json={"toListId": target["id"]},
    )
    assert moved.status_code == 200
    lists = {sub_list["id"]: sub_list for sub_list in moved.json()["lists"]}
    assert [s["channelId"] for s in lists[target["id"]]["subscriptions"]] == [CHANNEL_ID]

    removed = await client.delete(
        f"/api/subscription-lists/{target['id']}/subscriptions/{CHANNEL_ID}"
    )
    assert removed.status_code == 200
    assert await store.list_channel_ids() == [OTHER_CHANNEL_ID]

    cleared = await client.delete(f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions")
    assert cleared.status_code == 200
    assert await store.list_channel_ids() == []


@pytest.mark.asyncio
async def test_clear_all_subscriptions_keeps_lists(client, store):
    other = await store.create_list("Other")
    with patch(
        "tubefeed.api.routes_subscriptions.resolve_channel_id",
        AsyncMock(side_effect=[CHANNEL_ID, OTHER_CHANNEL_ID]),
    ):
        await client.post(
            f"/api/subscription-lists/{DEFAULT_LIST_ID}/subscriptions", json={"input": CHANNEL_ID}
        )
        await client.post(
            f"/api/subscription-lists/{other.id}/subscriptions", json={"input": OTHER_CHANNEL_ID}
        )

    response = await client.delete("/api/subscription-lists/subscriptions")

    assert response.status_code == 200
    lists = response.json()["lists"]
    assert [sub_list["id"] for sub_list in lists] == [DEFAULT_LIST_ID, other.id]
    assert all(sub_list["subscriptions"] == [] for sub_list in lists)
    assert await store.list_channel_ids() == []


@pytest.mark.asyncio
async def test_subscription_lists_store_failure_returns_500(client, store):
    store.path.write_text("[[[")

    response = await client.get("/api/subscription-lists")

    assert response.status_code == 500


# Progress stream tests


async def never_disconnected() -> bool:
    return False


@pytest.mark.asyncio
async def test_progress_events_sends_current_snapshot_first():
    progress = ProgressBroadcaster()
    session_id = progress.init(3)
    events = progress_events(progress, heartbeat_seconds=5, is_disconnected=never_disconnected)

    first = await events.__anext__()
    progress.update(CHANNEL_ID, "Rick Astley", session_id)
    second = await events.__anext__()
    await events.aclose()

    assert first.startswith("data: ") and first.endswith("\n\n")
    assert json.loads(first[len("data: "):]) == {
        "total": 3,
        "completed": 0,
        "currentChannel": None,
        "currentChannelTitle": None,
        "sessionId": session_id,
    }
    payload = json.loads(second[len("data: "):])
    assert payload["completed"] == 1
    assert payload["currentChannel"] == CHANNEL_ID
    assert payload["currentChannelTitle"] == "Rick Astley"


@pytest.mark.asyncio
async def test_progress_events_heartbeat_when_idle():
    progress = ProgressBroadcaster()
    events = progress_events(progress, heartbeat_seconds=0.01, is_disconnected=never_disconnected)

    await events.__anext__()
    heartbeat = await events.__anext__()
    await events.aclose()

    assert heartbeat == ": keep-alive\n\n"


@pytest.mark.asyncio
async def test_progress_events_stops_when_client_disconnects():
    progress = ProgressBroadcaster()
    events = progress_events(
        progress, heartbeat_seconds=0.01, is_disconnected=AsyncMock(return_value=True)
    )

    await events.__anext__()
    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(events.__anext__(), timeout=1)

    assert progress.observer_count == 0


@pytest.mark.asyncio
async def test_progress_events_unsubscribes_on_close():
    progress = ProgressBroadcaster()
    events = progress_events(progress, heartbeat_seconds=5, is_disconnected=never_disconnected)

    await events.__anext__()
    assert progress.observer_count == 1

    await events.aclose()
    assert progress.observer_count == 0
