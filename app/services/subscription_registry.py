"""Keyed store of push endpoints and their delivery preferences."""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol

from loguru import logger

from app.core.preferences import Preferences, merge_preferences


@dataclass
class Subscription:
    """One client's push endpoint plus how it wants to be notified."""

    endpoint: str
    keys: Dict[str, str]
    preferences: Preferences
    client_metadata: Optional[str] = None
    expiration_time: Optional[float] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def subscription_info(self) -> Dict[str, Any]:
        """Return the structure the Web Push transport expects."""

        return {"endpoint": self.endpoint, "keys": dict(self.keys)}


class SubscriptionRegistry(Protocol):
    """Interface shared by registry adapters."""

    def upsert(
        self,
        endpoint: str,
        keys: Mapping[str, str],
        preferences_override: Optional[Mapping[str, Any]] = None,
        metadata: Optional[str] = None,
        expiration_time: Optional[float] = None,
    ) -> Subscription:  # pragma: no cover - interface definition
        """Register an endpoint, replacing any previous entry for it."""

    def remove(self, endpoint: str) -> bool:  # pragma: no cover - interface definition
        """Forget an endpoint; unknown endpoints are ignored."""

    def remove_if(self, endpoint: str, subscription_id: str) -> bool:  # pragma: no cover
        """Forget an endpoint only if its entry still has ``subscription_id``."""

    def update_preferences(
        self, endpoint: str, partial: Mapping[str, Any]
    ) -> bool:  # pragma: no cover - interface definition
        """Merge ``partial`` into an existing entry's preferences."""

    def find(self, endpoint: str) -> Optional[Subscription]:  # pragma: no cover - interface definition
        """Look an entry up by endpoint."""

    def find_by_id(self, subscription_id: str) -> Optional[Subscription]:  # pragma: no cover
        """Look an entry up by id."""

    def all(self) -> List[Subscription]:  # pragma: no cover - interface definition
        """Snapshot every entry for fan-out."""

    def __len__(self) -> int:  # pragma: no cover - interface definition
        ...


class _EndpointLocks:
    """Reference-counted locks, one per endpoint currently being mutated."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    @contextmanager
    def hold(self, endpoint: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(endpoint, threading.Lock())
            self._holders[endpoint] = self._holders.get(endpoint, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[endpoint] -= 1
                if not self._holders[endpoint]:
                    del self._holders[endpoint]
                    del self._locks[endpoint]


class InMemorySubscriptionRegistry:
    """Process-local registry; mutations on one endpoint are serialized."""

    def __init__(self, default_preferences: Optional[Preferences] = None) -> None:
        self.default_preferences = default_preferences or Preferences()
        self._endpoint_locks = _EndpointLocks()
        self._index_lock = threading.Lock()
        self._by_endpoint: Dict[str, Subscription] = {}
        self._endpoint_by_id: Dict[str, str] = {}

    def upsert(
        self,
        endpoint: str,
        keys: Mapping[str, str],
        preferences_override: Optional[Mapping[str, Any]] = None,
        metadata: Optional[str] = None,
        expiration_time: Optional[float] = None,
    ) -> Subscription:
        with self._endpoint_locks.hold(endpoint):
            previous = self.find(endpoint)
            base = previous.preferences if previous else self.default_preferences
            subscription = Subscription(
                endpoint=endpoint,
                keys=dict(keys),
                preferences=merge_preferences(base, preferences_override or {}),
                client_metadata=metadata,
                expiration_time=expiration_time,
            )
            with self._index_lock:
                if previous is not None:
                    self._endpoint_by_id.pop(previous.id, None)
                self._by_endpoint[endpoint] = subscription
                self._endpoint_by_id[subscription.id] = endpoint

        logger.info(
            "Subscription replaced" if previous else "Subscription saved",
            subscription_id=subscription.id,
            endpoint=endpoint,
        )
        return subscription

    def remove(self, endpoint: str) -> bool:
        return self._pop(endpoint)

    def remove_if(self, endpoint: str, subscription_id: str) -> bool:
        """Remove the entry only while it is still ``subscription_id``."""

        return self._pop(endpoint, subscription_id)

    def _pop(self, endpoint: str, subscription_id: Optional[str] = None) -> bool:
        with self._endpoint_locks.hold(endpoint):
            with self._index_lock:
                current = self._by_endpoint.get(endpoint)
                if current is None or (subscription_id is not None and current.id != subscription_id):
                    removed = None
                else:
                    removed = self._by_endpoint.pop(endpoint)
                    self._endpoint_by_id.pop(removed.id, None)

        if removed is not None:
            logger.info("Subscription removed", subscription_id=removed.id, endpoint=endpoint)
        elif subscription_id is not None and current is not None:
            logger.info(
                "Subscription re-registered, keeping it",
                endpoint=endpoint,
                stale_id=subscription_id,
                current_id=current.id,
            )
        return removed is not None

    def update_preferences(self, endpoint: str, partial: Mapping[str, Any]) -> bool:
        with self._endpoint_locks.hold(endpoint):
            subscription = self.find(endpoint)
            if subscription is None:
                logger.info("Preference update for unknown endpoint", endpoint=endpoint)
                return False
            subscription.preferences = merge_preferences(subscription.preferences, partial)

        logger.info("Preferences updated", subscription_id=subscription.id, fields=sorted(partial))
        return True

    def find(self, endpoint: str) -> Optional[Subscription]:
        with self._index_lock:
            return self._by_endpoint.get(endpoint)

    def find_by_id(self, subscription_id: str) -> Optional[Subscription]:
        with self._index_lock:
            endpoint = self._endpoint_by_id.get(subscription_id)
            return self._by_endpoint.get(endpoint) if endpoint is not None else None

    def all(self) -> List[Subscription]:
        with self._index_lock:
            return list(self._by_endpoint.values())

    def __len__(self) -> int:
        with self._index_lock:
            return len(self._by_endpoint)


__all__ = ["InMemorySubscriptionRegistry", "Subscription", "SubscriptionRegistry"]
