"""Turn inbound push messages into notifications and route clicks."""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union
from urllib.parse import urljoin

from loguru import logger
from pydantic import ValidationError

from app.client.lifecycle import ExtendableEvent
from app.schemas.notification import InboundNotification
from app.utils.exceptions import MalformedPayloadError

DEFAULT_TITLE = "FlashStore"
DEFAULT_BODY = "New notification from FlashStore"
DEFAULT_ICON = "/icons/icon-192x192.png"
DEFAULT_BADGE = "/icons/badge-72x72.png"
DEFAULT_TAG = "flashstore-notification"
DEFAULT_URL = "/"
DEFAULT_ACTIONS: List[Dict[str, str]] = [
    {"action": "view", "title": "View"},
    {"action": "dismiss", "title": "Dismiss"},
]

FALLBACK_PAYLOAD = InboundNotification(
    title=DEFAULT_TITLE,
    body="New flash sale available!",
    icon=DEFAULT_ICON,
)


class WindowClient(Protocol):
    url: str

    async def focus(self) -> Any:  # pragma: no cover - interface definition
        ...


class WindowClients(Protocol):
    """The application windows the worker can see and open."""

    async def match_all(self) -> List[WindowClient]:  # pragma: no cover - interface definition
        ...

    async def open_window(self, url: str) -> Optional[WindowClient]:  # pragma: no cover
        ...


class NotificationPlatform(Protocol):
    """The platform's notification display surface."""

    async def show_notification(
        self, title: str, options: Dict[str, Any]
    ) -> "DisplayedNotification":  # pragma: no cover - interface definition
        ...


@dataclass
class DisplayedNotification:
    """A notification as shown to the user."""

    title: str
    options: Dict[str, Any] = field(default_factory=dict)
    closed: bool = False

    @property
    def data(self) -> Dict[str, Any]:
        data = self.options.get("data")
        return data if isinstance(data, dict) else {}

    @property
    def tag(self) -> Optional[str]:
        return self.options.get("tag")

    def close(self) -> None:
        self.closed = True


class ClickOutcome(enum.Enum):
    FOCUSED_EXISTING = "focused-existing"
    OPENED_NEW = "opened-new"


def decode_payload(raw: Union[bytes, str, None]) -> InboundNotification:
    """Parse a push message body; an empty body decodes to an empty payload."""

    if raw is None or raw in (b"", ""):
        return InboundNotification()
    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayloadError("Push payload is not valid JSON") from exc
    if not isinstance(document, dict):
        raise MalformedPayloadError("Push payload must be a JSON object")
    try:
        return InboundNotification.model_validate(document)
    except ValidationError as exc:
        raise MalformedPayloadError("Push payload has unexpected fields", {"errors": exc.errors()}) from exc


def notification_options(payload: InboundNotification) -> Dict[str, Any]:
    """Fill every display option, using defaults for what the payload omits."""

    actions = (
        [action.model_dump() for action in payload.actions]
        if payload.actions is not None
        else [dict(action) for action in DEFAULT_ACTIONS]
    )
    return {
        "body": payload.body or DEFAULT_BODY,
        "icon": payload.icon or DEFAULT_ICON,
        "badge": payload.badge or DEFAULT_BADGE,
        "image": payload.image,
        "data": payload.data or {"url": DEFAULT_URL},
        "actions": actions,
        "tag": payload.tag or DEFAULT_TAG,
        "requireInteraction": True,
    }


class NotificationPresenter:
    """Display push messages and route notification clicks back into the app."""

    def __init__(
        self,
        platform: NotificationPlatform,
        clients: WindowClients,
        origin: str = "http://localhost",
    ) -> None:
        self.platform = platform
        self.clients = clients
        self.origin = origin

    def on_push_received(self, raw: Union[bytes, str, None], event: ExtendableEvent) -> None:
        """Show a notification for ``raw``; undecodable payloads get a default one."""

        try:
            payload = decode_payload(raw)
        except MalformedPayloadError as exc:
            logger.warning("Malformed push payload, showing default notification", error=exc.message)
            payload = FALLBACK_PAYLOAD

        title = payload.title or DEFAULT_TITLE
        event.wait_until(self.platform.show_notification(title, notification_options(payload)))

    def on_notification_clicked(
        self, notification: DisplayedNotification, event: ExtendableEvent
    ) -> None:
        """Close the notification and focus or open the window it points at."""

        notification.close()
        url = notification.data.get("url")
        if not isinstance(url, str) or not url:
            url = DEFAULT_URL
        target_url = urljoin(self.origin, url)
        logger.info("Notification clicked", tag=notification.tag, url=target_url)
        event.wait_until(self._focus_or_open(target_url))

    async def _focus_or_open(self, target_url: str) -> ClickOutcome:
        for client in await self.clients.match_all():
            if client.url == target_url:
                await client.focus()
                return ClickOutcome.FOCUSED_EXISTING
        await self.clients.open_window(target_url)
        return ClickOutcome.OPENED_NEW


__all__ = [
    "ClickOutcome",
    "DEFAULT_ACTIONS",
    "DEFAULT_BODY",
    "DEFAULT_TITLE",
    "DisplayedNotification",
    "FALLBACK_PAYLOAD",
    "NotificationPlatform",
    "NotificationPresenter",
    "WindowClient",
    "WindowClients",
    "decode_payload",
    "notification_options",
]
