"""Tests for push display and click routing."""
from __future__ import annotations

import json

import pytest

from app.client.lifecycle import ExtendableEvent
from app.client.notification_presenter import (
    DEFAULT_ACTIONS,
    DEFAULT_BODY,
    DEFAULT_TITLE,
    ClickOutcome,
    DisplayedNotification,
    NotificationPresenter,
    decode_payload,
)
from app.utils.exceptions import MalformedPayloadError
from tests.conftest import FakePlatform, FakeWindowClients

ORIGIN = "https://shop.example.com"


def make_presenter(platform: FakePlatform, windows: FakeWindowClients) -> NotificationPresenter:
    return NotificationPresenter(platform, windows, origin=ORIGIN)


async def push(presenter: NotificationPresenter, raw) -> None:
    event = ExtendableEvent("push")
    presenter.on_push_received(raw, event)
    await event.settle()


async def click(presenter: NotificationPresenter, notification: DisplayedNotification) -> ClickOutcome:
    event = ExtendableEvent("notificationclick")
    presenter.on_notification_clicked(notification, event)
    (outcome,) = await event.settle()
    return outcome


@pytest.mark.parametrize("raw", [b"not json", "[1, 2]", '{"actions": "view"}', b"\xff\xfe"])
def test_decode_payload_rejects_malformed_input(raw) -> None:
    with pytest.raises(MalformedPayloadError):
        decode_payload(raw)


def test_decode_payload_accepts_empty_body() -> None:
    assert decode_payload(None).title is None
    assert decode_payload(b"").body is None


@pytest.mark.asyncio
async def test_full_payload_is_displayed_as_sent(platform: FakePlatform) -> None:
    presenter = make_presenter(platform, FakeWindowClients())
    payload = {
        "title": "Flash Sale Started!",
        "body": "50% OFF",
        "icon": "/icons/sale.png",
        "image": "/images/flash-sale.jpg",
        "badge": "/icons/badge.png",
        "tag": "flash-sale",
        "data": {"url": "/products/1", "productId": "1"},
        "actions": [{"action": "view", "title": "View Deal"}],
    }

    await push(presenter, json.dumps(payload).encode())

    (shown,) = platform.shown
    assert shown.title == "Flash Sale Started!"
    assert shown.options == {
        "body": "50% OFF",
        "icon": "/icons/sale.png",
        "badge": "/icons/badge.png",
        "image": "/images/flash-sale.jpg",
        "data": {"url": "/products/1", "productId": "1"},
        "actions": [{"action": "view", "title": "View Deal"}],
        "tag": "flash-sale",
        "requireInteraction": True,
    }


@pytest.mark.asyncio
async def test_missing_fields_get_defaults(platform: FakePlatform) -> None:
    presenter = make_presenter(platform, FakeWindowClients())

    await push(presenter, None)

    (shown,) = platform.shown
    assert shown.title == DEFAULT_TITLE
    assert shown.options["body"] == DEFAULT_BODY
    assert shown.options["icon"] == "/icons/icon-192x192.png"
    assert shown.options["tag"] == "flashstore-notification"
    assert shown.options["data"] == {"url": "/"}
    assert shown.options["actions"] == DEFAULT_ACTIONS
    assert shown.options["requireInteraction"] is True


@pytest.mark.asyncio
async def test_malformed_payload_still_shows_a_notification(platform: FakePlatform) -> None:
    presenter = make_presenter(platform, FakeWindowClients())

    await push(presenter, b"{oops")

    (shown,) = platform.shown
    assert shown.title == "FlashStore"
    assert shown.options["body"] == "New flash sale available!"
    assert shown.options["requireInteraction"] is True


@pytest.mark.asyncio
async def test_click_focuses_window_already_showing_target(platform: FakePlatform) -> None:
    windows = FakeWindowClients([f"{ORIGIN}/", f"{ORIGIN}/products/1"])
    presenter = make_presenter(platform, windows)
    notification = DisplayedNotification("Sale", {"data": {"url": "/products/1"}})

    outcome = await click(presenter, notification)

    assert outcome is ClickOutcome.FOCUSED_EXISTING
    assert notification.closed
    assert [window.focused for window in windows.windows] == [False, True]
    assert windows.opened == []


@pytest.mark.asyncio
async def test_click_opens_new_window_when_none_matches(platform: FakePlatform) -> None:
    windows = FakeWindowClients([f"{ORIGIN}/"])
    presenter = make_presenter(platform, windows)
    notification = DisplayedNotification("Sale", {"data": {"url": "/products/2"}})

    outcome = await click(presenter, notification)

    assert outcome is ClickOutcome.OPENED_NEW
    assert windows.opened == [f"{ORIGIN}/products/2"]
    assert not windows.windows[0].focused


@pytest.mark.asyncio
async def test_click_without_url_targets_application_root(platform: FakePlatform) -> None:
    windows = FakeWindowClients()
    presenter = make_presenter(platform, windows)

    outcome = await click(presenter, DisplayedNotification("Sale"))

    assert outcome is ClickOutcome.OPENED_NEW
    assert windows.opened == [f"{ORIGIN}/"]


@pytest.mark.asyncio
@pytest.mark.parametrize("url", [5, None, "", ["/deals"]])
async def test_click_with_unusable_url_targets_application_root(platform: FakePlatform, url) -> None:
    windows = FakeWindowClients()
    presenter = make_presenter(platform, windows)
    await push(presenter, json.dumps({"title": "Sale", "data": {"url": url}}).encode())
    (shown,) = platform.shown

    outcome = await click(presenter, shown)

    assert shown.closed
    assert outcome is ClickOutcome.OPENED_NEW
    assert windows.opened == [f"{ORIGIN}/"]
