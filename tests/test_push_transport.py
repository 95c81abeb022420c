"""Tests for the Web Push transport adapter."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from pywebpush import WebPushException

from app.core.preferences import Preferences
from app.services.push_transport import WebPushTransport, classify_rejection
from app.services.subscription_registry import Subscription
from app.utils.exceptions import EndpointGoneError, TransportRejectedError, TransportUnavailableError
from tests.conftest import KEYS


@pytest.fixture()
def subscription() -> Subscription:
    return Subscription(endpoint="https://push.example.com/abc", keys=KEYS, preferences=Preferences())


@pytest.fixture()
def web_push() -> WebPushTransport:
    return WebPushTransport(
        vapid_private_key="private-key",
        vapid_subject="mailto:ops@example.com",
        ttl=60,
        request_timeout=5.0,
    )


def _rejection(status_code: int) -> WebPushException:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    return WebPushException(f"Push failed: {status_code}", response=response)


@pytest.mark.parametrize(
    ("status_code", "error_type", "permanent"),
    [
        (404, EndpointGoneError, True),
        (410, EndpointGoneError, True),
        (413, TransportRejectedError, True),
        (400, TransportRejectedError, True),
        (429, TransportUnavailableError, False),
        (500, TransportUnavailableError, False),
        (None, TransportUnavailableError, False),
    ],
)
def test_classify_rejection(status_code, error_type, permanent) -> None:
    error = classify_rejection(status_code, "failed")

    assert type(error) is error_type
    assert error.permanent is permanent
    assert error.status_code == status_code


def test_send_passes_vapid_details(web_push: WebPushTransport, subscription: Subscription) -> None:
    with patch("app.services.push_transport.webpush") as webpush:
        webpush.return_value.status_code = 201

        status = web_push.send(subscription, '{"title": "Hi"}')

    assert status == 201
    kwargs = webpush.call_args.kwargs
    assert kwargs["subscription_info"] == {"endpoint": subscription.endpoint, "keys": KEYS}
    assert kwargs["data"] == '{"title": "Hi"}'
    assert kwargs["vapid_private_key"] == "private-key"
    assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}
    assert kwargs["ttl"] == 60
    assert kwargs["timeout"] == 5.0


def test_send_maps_gone_endpoint(web_push: WebPushTransport, subscription: Subscription) -> None:
    with patch("app.services.push_transport.webpush", side_effect=_rejection(410)):
        with pytest.raises(EndpointGoneError) as excinfo:
            web_push.send(subscription, "{}")

    assert excinfo.value.status_code == 410


def test_send_maps_throttling_to_transient(web_push: WebPushTransport, subscription: Subscription) -> None:
    with patch("app.services.push_transport.webpush", side_effect=_rejection(429)):
        with pytest.raises(TransportUnavailableError):
            web_push.send(subscription, "{}")


def test_send_maps_timeout_to_transient(web_push: WebPushTransport, subscription: Subscription) -> None:
    with patch("app.services.push_transport.webpush", side_effect=requests.Timeout("slow")):
        with pytest.raises(TransportUnavailableError) as excinfo:
            web_push.send(subscription, "{}")

    assert excinfo.value.permanent is False
