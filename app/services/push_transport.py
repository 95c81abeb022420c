"""Web Push transport adapter."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import requests
from loguru import logger
from pywebpush import WebPushException, webpush

from app.services.subscription_registry import Subscription
from app.utils.exceptions import (
    EndpointGoneError,
    TransportRejectedError,
    TransportUnavailableError,
)

GONE_STATUSES = frozenset({404, 410})
RETRYABLE_STATUSES = frozenset({408, 429})


class PushTransport(Protocol):
    """Anything that can hand a payload to a push gateway."""

    def send(self, subscription: Subscription, data: str) -> int:  # pragma: no cover - interface definition
        """Deliver ``data`` and return the gateway's acceptance status."""


def classify_rejection(status_code: int | None, reason: str) -> TransportRejectedError:
    """Map a gateway status onto the permanent/transient taxonomy."""

    if status_code in GONE_STATUSES:
        return EndpointGoneError(reason, status_code=status_code)
    if status_code is None or status_code in RETRYABLE_STATUSES or status_code >= 500:
        return TransportUnavailableError(reason, status_code=status_code)
    return TransportRejectedError(reason, status_code=status_code, permanent=True)


@dataclass
class WebPushTransport:
    """Send encrypted messages with VAPID authentication through ``pywebpush``."""

    vapid_private_key: str
    vapid_subject: str
    ttl: int = 86400
    request_timeout: float = 10.0

    def send(self, subscription: Subscription, data: str) -> int:
        try:
            response = webpush(
                subscription_info=subscription.subscription_info(),
                data=data,
                vapid_private_key=self.vapid_private_key,
                # pywebpush fills in "aud" and "exp" on the dict it is given
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.request_timeout,
            )
        except WebPushException as ex:
            status_code = ex.response.status_code if ex.response is not None else None
            raise classify_rejection(status_code, str(ex)) from ex
        except (requests.Timeout, requests.ConnectionError) as ex:
            raise TransportUnavailableError(f"Push gateway unreachable: {ex}") from ex

        logger.debug(
            "Push accepted",
            subscription_id=subscription.id,
            status=response.status_code,
        )
        return response.status_code


__all__ = [
    "PushTransport",
    "WebPushTransport",
    "classify_rejection",
]
