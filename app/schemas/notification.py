"""Pydantic models for push payloads and notification endpoints."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationAction(BaseModel):
    """Interactive button rendered on a notification."""

    action: str
    title: str


class NotificationPayload(BaseModel):
    """Message carried by the push transport and decoded by the client."""

    title: str = Field(min_length=1)
    body: str
    icon: Optional[str] = None
    image: Optional[str] = None
    badge: Optional[str] = None
    tag: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=lambda: {"url": "/"})
    actions: List[NotificationAction] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class InboundNotification(BaseModel):
    """Lenient view of a received payload; every display field may be missing."""

    title: Optional[str] = None
    body: Optional[str] = None
    icon: Optional[str] = None
    image: Optional[str] = None
    badge: Optional[str] = None
    tag: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    actions: Optional[List[NotificationAction]] = None

    model_config = ConfigDict(extra="ignore")


class NotificationTestRequest(BaseModel):
    """Body of a test delivery to a single endpoint."""

    endpoint: str = Field(min_length=1)


class BroadcastRequest(BaseModel):
    """Trigger a fan-out to every eligible subscriber."""

    payload: Optional[NotificationPayload] = None
    categories: List[str] = Field(default_factory=lambda: ["electronics"])


class DeliveryResultRead(BaseModel):
    """Outcome of one recipient's send."""

    subscription_id: str = Field(serialization_alias="subscriptionId")
    success: bool
    status_code: Optional[int] = Field(default=None, serialization_alias="statusCode")
    error: Optional[str] = None
    permanent: bool = False


class BroadcastResponse(BaseModel):
    """Summary of a broadcast with one entry per eligible recipient."""

    sent: int
    failed: int
    evicted: int
    results: List[DeliveryResultRead]
