"""Client worker: lifecycle, fetch, push and click events in one place."""
from __future__ import annotations

from typing import List, Optional, Union

import httpx
from loguru import logger

from app.client.cache_strategy import CacheStrategyEngine
from app.client.lifecycle import ExtendableEvent
from app.client.notification_presenter import (
    ClickOutcome,
    DisplayedNotification,
    NotificationPresenter,
)


class ServiceWorker:
    """Dispatch worker events and return only once their work has settled."""

    def __init__(self, engine: CacheStrategyEngine, presenter: NotificationPresenter) -> None:
        self.engine = engine
        self.presenter = presenter
        self.skip_waiting = False
        self.clients_claimed = False

    async def install(self) -> None:
        logger.info("Service worker installing", version=self.engine.config.version)
        event = ExtendableEvent("install", strict=True)
        event.wait_until(self.engine.install())
        await event.settle()
        self.skip_waiting = True

    async def activate(self) -> List[str]:
        logger.info("Service worker activating", version=self.engine.config.version)
        event = ExtendableEvent("activate", strict=True)
        purged = event.wait_until(self.engine.activate())
        await event.settle()
        self.clients_claimed = True
        return purged.result()

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        event = ExtendableEvent("fetch")
        response = await self.engine.handle(request, event)
        await event.settle()
        return response

    async def push(self, data: Union[bytes, str, None]) -> Optional[DisplayedNotification]:
        event = ExtendableEvent("push")
        self.presenter.on_push_received(data, event)
        shown = await event.settle()
        return shown[0] if shown else None

    async def notification_click(self, notification: DisplayedNotification) -> ClickOutcome:
        event = ExtendableEvent("notificationclick", strict=True)
        self.presenter.on_notification_clicked(notification, event)
        (outcome,) = await event.settle()
        return outcome


__all__ = ["ServiceWorker"]
