"""Shared API dependencies."""
from __future__ import annotations

from fastapi import Depends

from app.config import settings
from app.services.push_dispatcher import PushDispatcher
from app.services.push_transport import PushTransport, WebPushTransport
from app.services.subscription_registry import InMemorySubscriptionRegistry, SubscriptionRegistry
from app.utils.exceptions import handle_push_not_configured

_registry_singleton = InMemorySubscriptionRegistry()
_transport_singleton: PushTransport | None = None


def get_registry() -> SubscriptionRegistry:
    """Return the process-wide subscription registry."""

    return _registry_singleton


def get_vapid_public_key() -> str:
    """Return the VAPID public key or raise if push is not configured."""

    if not settings.VAPID_PUBLIC_KEY:
        raise handle_push_not_configured()
    return settings.VAPID_PUBLIC_KEY


def get_push_transport() -> PushTransport:
    """Return a cached Web Push transport or raise if keys are missing."""

    global _transport_singleton
    if _transport_singleton is None:
        if not settings.VAPID_PRIVATE_KEY:
            raise handle_push_not_configured()
        _transport_singleton = WebPushTransport(
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            vapid_subject=settings.VAPID_SUBJECT,
            ttl=settings.PUSH_TTL_SECONDS,
            request_timeout=settings.PUSH_REQUEST_TIMEOUT_SECONDS,
        )
    return _transport_singleton


def get_push_dispatcher(
    registry: SubscriptionRegistry = Depends(get_registry),
    transport: PushTransport = Depends(get_push_transport),
) -> PushDispatcher:
    """Assemble a dispatcher over the registry and transport."""

    return PushDispatcher(
        registry,
        transport,
        max_payload_bytes=settings.PUSH_MAX_PAYLOAD_BYTES,
        max_retries=settings.PUSH_MAX_RETRIES,
        concurrency=settings.PUSH_BROADCAST_CONCURRENCY,
    )
