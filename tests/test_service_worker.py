"""End-to-end tests for worker event handling."""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from app.client.cache_storage import CacheStorage
from app.client.cache_strategy import CacheConfig, CacheStrategyEngine
from app.client.lifecycle import ExtendableEvent
from app.client.notification_presenter import ClickOutcome, NotificationPresenter
from app.client.service_worker import ServiceWorker
from app.utils.exceptions import PrecacheError
from tests.conftest import FakePlatform, FakeWindowClients

ORIGIN = "https://shop.example.com"


def handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=f"body of {request.url.path}".encode())


@pytest.fixture()
def storage() -> CacheStorage:
    return CacheStorage()


@pytest.fixture()
def windows() -> FakeWindowClients:
    return FakeWindowClients([f"{ORIGIN}/"])


@pytest.fixture()
def worker(storage: CacheStorage, platform: FakePlatform, windows: FakeWindowClients) -> ServiceWorker:
    engine = CacheStrategyEngine(
        storage, httpx.MockTransport(handler), CacheConfig(version="v2", origin=ORIGIN)
    )
    return ServiceWorker(engine, NotificationPresenter(platform, windows, origin=ORIGIN))


@pytest.mark.asyncio
async def test_install_then_activate_replaces_previous_version(
    worker: ServiceWorker, storage: CacheStorage
) -> None:
    storage.open("flashstore-pwa-v1")
    storage.open("flashstore-api-v1")

    await worker.install()
    purged = await worker.activate()

    assert worker.skip_waiting and worker.clients_claimed
    assert sorted(purged) == ["flashstore-api-v1", "flashstore-pwa-v1"]
    assert storage.keys() == ["flashstore-pwa-v2"]
    assert len(storage.open("flashstore-pwa-v2")) == 4


@pytest.mark.asyncio
async def test_failed_install_does_not_skip_waiting(storage: CacheStorage) -> None:
    network = httpx.MockTransport(lambda request: httpx.Response(503))
    worker = ServiceWorker(
        CacheStrategyEngine(storage, network, CacheConfig(origin=ORIGIN)),
        NotificationPresenter(FakePlatform(), FakeWindowClients(), origin=ORIGIN),
    )

    with pytest.raises(PrecacheError):
        await worker.install()

    assert worker.skip_waiting is False


@pytest.mark.asyncio
async def test_fetch_returns_after_cache_write_settles(
    worker: ServiceWorker, storage: CacheStorage
) -> None:
    response = await worker.fetch(httpx.Request("GET", f"{ORIGIN}/api/products"))

    assert response.content == b"body of /api/products"
    assert len(storage.open("flashstore-api-v2")) == 1


@pytest.mark.asyncio
async def test_push_then_click_opens_sale_page(
    worker: ServiceWorker, platform: FakePlatform, windows: FakeWindowClients
) -> None:
    payload = {"title": "Flash Sale", "body": "Now", "data": {"url": "/deals"}}

    shown = await worker.push(json.dumps(payload))
    outcome = await worker.notification_click(shown)

    assert shown is platform.shown[0]
    assert shown.closed
    assert outcome is ClickOutcome.OPENED_NEW
    assert windows.opened == [f"{ORIGIN}/deals"]


@pytest.mark.asyncio
async def test_settle_waits_for_work_added_while_settling() -> None:
    event = ExtendableEvent("push")
    order: list[str] = []

    async def late() -> str:
        order.append("late")
        return "late"

    async def early() -> str:
        await asyncio.sleep(0)
        event.wait_until(late())
        order.append("early")
        return "early"

    event.wait_until(early())
    results = await event.settle()

    assert sorted(results) == ["early", "late"]
    assert event.pending == 0
    assert sorted(order) == ["early", "late"]


@pytest.mark.asyncio
async def test_strict_event_reraises_first_failure() -> None:
    event = ExtendableEvent("install", strict=True)

    async def boom() -> None:
        raise RuntimeError("precache failed")

    event.wait_until(boom())

    with pytest.raises(RuntimeError):
        await event.settle()
    assert len(event.errors) == 1
