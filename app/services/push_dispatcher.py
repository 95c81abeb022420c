"""Build notification payloads and fan them out through the push transport."""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.preferences import Preferences
from app.schemas.notification import NotificationAction, NotificationPayload
from app.services.push_transport import PushTransport
from app.services.subscription_registry import Subscription, SubscriptionRegistry
from app.utils.exceptions import (
    EndpointGoneError,
    PayloadTooLargeError,
    SubscriptionNotFoundError,
    TransportRejectedError,
    TransportUnavailableError,
)

# Dropped in this order when a payload does not fit the transport limit.
OPTIONAL_FIELDS_BY_COST = ("image", "actions", "badge", "icon")


@dataclass
class DeliveryResult:
    """Outcome of handing one payload to the transport for one subscriber.

    Success means "accepted for delivery" by the gateway, never "displayed".
    """

    subscription_id: str
    endpoint: str
    status_code: Optional[int] = None
    error: Optional[TransportRejectedError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def permanent(self) -> bool:
        return self.error is not None and self.error.permanent

    @property
    def retryable(self) -> bool:
        return self.error is not None and not self.error.permanent

    @property
    def gone(self) -> bool:
        return isinstance(self.error, EndpointGoneError)


def flash_sale_payload(
    *,
    title: str = "\U0001F680 Flash Sale Started!",
    body: str = "50% OFF on all electronics! Limited time offer!",
    url: str = "/",
    product_id: str = "1",
) -> NotificationPayload:
    """Return the standard flash-sale announcement."""

    return NotificationPayload(
        title=title,
        body=body,
        icon="/icons/icon-192x192.png",
        image="/images/flash-sale.jpg",
        badge="/icons/badge-72x72.png",
        data={"url": url, "productId": product_id, "action": "flash-sale"},
        actions=[
            NotificationAction(action="view", title="View Deal"),
            NotificationAction(action="dismiss", title="Dismiss"),
        ],
        tag="flash-sale",
    )


class PushDispatcher:
    """Send payloads to registry entries, one isolated send per recipient."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        transport: PushTransport,
        *,
        max_payload_bytes: int = 3993,
        max_retries: int = 0,
        concurrency: int = 8,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.max_payload_bytes = max_payload_bytes
        self.max_retries = max_retries
        self.concurrency = concurrency

    def encode_payload(self, payload: NotificationPayload) -> str:
        """Serialize ``payload``, shedding optional fields until it fits."""

        document: Dict[str, Any] = payload.model_dump(mode="json", exclude_none=True)
        encoded = self._encode(document)
        if self._fits(encoded):
            return encoded

        original_size = len(encoded.encode("utf-8"))
        for name in OPTIONAL_FIELDS_BY_COST:
            document.pop(name, None)
            encoded = self._encode(document)
            if self._fits(encoded):
                break
        else:
            document["data"] = {"url": document.get("data", {}).get("url", "/")}
            encoded = self._encode(document)

        size = len(encoded.encode("utf-8"))
        if size > self.max_payload_bytes:
            raise PayloadTooLargeError(size, self.max_payload_bytes)
        logger.warning(
            "Payload trimmed to fit transport limit",
            original_size=original_size,
            size=size,
            kept=sorted(document),
        )
        return encoded

    def send_to(self, subscription_id: str, payload: NotificationPayload) -> DeliveryResult:
        """Send to one subscription by id."""

        subscription = self.registry.find_by_id(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return self._send_one(subscription, payload)

    def send_to_endpoint(self, endpoint: str, payload: NotificationPayload) -> DeliveryResult:
        """Send to one subscription by endpoint."""

        subscription = self.registry.find(endpoint)
        if subscription is None:
            raise SubscriptionNotFoundError(endpoint)
        return self._send_one(subscription, payload)

    def broadcast(
        self,
        payload: NotificationPayload,
        eligible: Callable[[Preferences], bool],
    ) -> List[DeliveryResult]:
        """Send to every subscription whose preferences pass ``eligible``.

        Each recipient gets its own result; one failure never affects another
        recipient's send. Result order carries no meaning.
        """

        subscriptions = self.registry.all()
        recipients = [sub for sub in subscriptions if self._is_eligible(sub, eligible)]
        logger.info(
            "Starting broadcast",
            registered=len(subscriptions),
            eligible=len(recipients),
        )
        if not recipients:
            return []

        try:
            data = self.encode_payload(payload)
        except PayloadTooLargeError as exc:
            logger.error("Broadcast payload rejected", error=exc.message)
            return [self._rejected(sub, exc) for sub in recipients]

        workers = min(self.concurrency, len(recipients))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push") as pool:
            results = list(pool.map(lambda sub: self._deliver(sub, data), recipients))

        failed = sum(1 for result in results if not result.ok)
        logger.info("Broadcast finished", sent=len(results) - failed, failed=failed)
        return results

    @staticmethod
    def _is_eligible(subscription: Subscription, eligible: Callable[[Preferences], bool]) -> bool:
        try:
            return eligible(subscription.preferences)
        except Exception:  # noqa: BLE001
            logger.exception("Eligibility check failed, skipping", subscription_id=subscription.id)
            return False

    def _send_one(self, subscription: Subscription, payload: NotificationPayload) -> DeliveryResult:
        try:
            data = self.encode_payload(payload)
        except PayloadTooLargeError as exc:
            return self._rejected(subscription, exc)
        return self._deliver(subscription, data)

    @staticmethod
    def _rejected(subscription: Subscription, error: TransportRejectedError) -> DeliveryResult:
        return DeliveryResult(
            subscription_id=subscription.id,
            endpoint=subscription.endpoint,
            status_code=error.status_code,
            error=error,
        )

    def _deliver(self, subscription: Subscription, data: str) -> DeliveryResult:
        result = DeliveryResult(subscription_id=subscription.id, endpoint=subscription.endpoint)
        try:
            result.status_code = self._send_with_retry(subscription, data)
        except TransportRejectedError as exc:
            result.error = exc
            result.status_code = exc.status_code
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected push transport failure", subscription_id=subscription.id)
            result.error = TransportUnavailableError(str(exc))

        if result.error is not None:
            logger.warning(
                "Push delivery failed",
                subscription_id=subscription.id,
                status=result.status_code,
                permanent=result.permanent,
                error=result.error.message,
            )
        return result

    def _send_with_retry(self, subscription: Subscription, data: str) -> int:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception_type(TransportUnavailableError),
            before_sleep=lambda state: logger.warning(
                "Retrying push send",
                subscription_id=subscription.id,
                attempt=state.attempt_number,
            ),
            reraise=True,
        )
        return retrying(self.transport.send, subscription, data)

    @staticmethod
    def _encode(document: Dict[str, Any]) -> str:
        return json.dumps(document, ensure_ascii=False, separators=(",", ":"))

    def _fits(self, encoded: str) -> bool:
        return len(encoded.encode("utf-8")) <= self.max_payload_bytes


__all__ = ["DeliveryResult", "OPTIONAL_FIELDS_BY_COST", "PushDispatcher", "flash_sale_payload"]
