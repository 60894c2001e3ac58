"""Health check endpoints for the tubefeed API."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from tubefeed.api.dependencies import get_store
from tubefeed.errors import StoreError
from tubefeed.store import SubscriptionListStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def health_check():
    """
    Liveness check endpoint.

    Returns:
        A simple status object indicating the process is up
    """
    return {"ok": True}


@router.get("/readyz")
async def readiness_check(store: SubscriptionListStore = Depends(get_store)):
    """
    Readiness check endpoint.

    The service is ready when the subscription store can be read.

    Returns:
        A status object; 503 if the store is unavailable
    """
    try:
        await store.read_lists()
    except StoreError:
        logger.error("Readiness check failed: subscription store unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail="Subscription store unavailable")
    return {"ok": True}
