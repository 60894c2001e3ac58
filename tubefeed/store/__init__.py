"""JSON file persistence for subscription lists."""

from .models import Subscription, SubscriptionList, SubscriptionListsData
from .subscription_lists import DEFAULT_LIST_ID, SubscriptionListStore

__all__ = [
    "DEFAULT_LIST_ID",
    "Subscription",
    "SubscriptionList",
    "SubscriptionListStore",
    "SubscriptionListsData",
]
