"""Client-side notification state engine and its transports."""

from .api import NotificationApiClient
from .backoff import Backoff
from .config import ClientSettings
from .engine import NotificationReconciliationEngine, NotificationSnapshot
from .optimistic import OptimisticMutations, PendingMutation
from .push import NotificationPushClient, PushLifecycle, websocket_connector
from .state import ConnectionState, NotificationCache
from .subscriptions import ListenerRegistry, Subscription

__all__ = [
    "Backoff",
    "ClientSettings",
    "ConnectionState",
    "ListenerRegistry",
    "NotificationApiClient",
    "NotificationCache",
    "NotificationPushClient",
    "NotificationReconciliationEngine",
    "NotificationSnapshot",
    "OptimisticMutations",
    "PendingMutation",
    "PushLifecycle",
    "Subscription",
    "websocket_connector",
]
