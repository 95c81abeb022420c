"""Pytest fixtures for API and worker tests."""

import json
import os
from collections.abc import Generator
from typing import Any, Dict, List, Optional

os.environ.setdefault("VAPID_PUBLIC_KEY", "test-public-key")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-private-key")

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.client.notification_presenter import DisplayedNotification
from app.main import create_app
from app.services.push_dispatcher import PushDispatcher
from app.services.subscription_registry import InMemorySubscriptionRegistry, Subscription
from app.utils.exceptions import TransportRejectedError


class RecordingTransport:
    """Push transport double that records messages; failures are scripted per endpoint."""

    def __init__(self) -> None:
        self.sent: List[tuple[str, Dict[str, Any]]] = []
        self.failures: Dict[str, TransportRejectedError] = {}

    def fail(self, endpoint: str, error: TransportRejectedError) -> None:
        self.failures[endpoint] = error

    def send(self, subscription: Subscription, data: str) -> int:
        error = self.failures.get(subscription.endpoint)
        if error is not None:
            raise error
        self.sent.append((subscription.endpoint, json.loads(data)))
        return 201


class FakeWindow:
    def __init__(self, url: str) -> None:
        self.url = url
        self.focused = False

    async def focus(self) -> "FakeWindow":
        self.focused = True
        return self


class FakeWindowClients:
    def __init__(self, urls: Optional[List[str]] = None) -> None:
        self.windows = [FakeWindow(url) for url in urls or []]
        self.opened: List[str] = []

    async def match_all(self) -> List[FakeWindow]:
        return list(self.windows)

    async def open_window(self, url: str) -> FakeWindow:
        self.opened.append(url)
        window = FakeWindow(url)
        self.windows.append(window)
        return window


class FakePlatform:
    def __init__(self) -> None:
        self.shown: List[DisplayedNotification] = []

    async def show_notification(self, title: str, options: Dict[str, Any]) -> DisplayedNotification:
        notification = DisplayedNotification(title=title, options=options)
        self.shown.append(notification)
        return notification


KEYS = {
    "p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
    "auth": "tBHItJI5svbpez7KI4CCXg",
}


@pytest.fixture()
def registry() -> InMemorySubscriptionRegistry:
    return InMemorySubscriptionRegistry()


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def dispatcher(registry, transport) -> PushDispatcher:
    return PushDispatcher(registry, transport)


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def client(registry, transport) -> Generator[TestClient, None, None]:
    app = create_app()
    app.dependency_overrides[deps.get_registry] = lambda: registry
    app.dependency_overrides[deps.get_push_transport] = lambda: transport
    with TestClient(app) as test_client:
        yield test_client
