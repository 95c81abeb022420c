"""Client-side worker: resource caching and push notification display."""

from app.client.cache_storage import CacheStorage
from app.client.cache_strategy import CacheConfig, CacheStrategyEngine, CachingTransport
from app.client.lifecycle import ExtendableEvent
from app.client.notification_presenter import NotificationPresenter
from app.client.service_worker import ServiceWorker

__all__ = [
    "CacheConfig",
    "CacheStorage",
    "CacheStrategyEngine",
    "CachingTransport",
    "ExtendableEvent",
    "NotificationPresenter",
    "ServiceWorker",
]
