"""API routers for tubefeed."""

from tubefeed.api.routes_feed import router as feed_router
from tubefeed.api.routes_health import router as health_router
from tubefeed.api.routes_subscriptions import router as subscriptions_router

__all__ = [
    "health_router",
    "feed_router",
    "subscriptions_router",
]
