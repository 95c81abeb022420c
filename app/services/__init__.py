"""Service layer package."""

from app.services.push_dispatcher import DeliveryResult, PushDispatcher
from app.services.push_transport import PushTransport, WebPushTransport
from app.services.subscription_registry import (
    InMemorySubscriptionRegistry,
    Subscription,
    SubscriptionRegistry,
)

__all__ = [
    "DeliveryResult",
    "InMemorySubscriptionRegistry",
    "PushDispatcher",
    "PushTransport",
    "Subscription",
    "SubscriptionRegistry",
    "WebPushTransport",
]
