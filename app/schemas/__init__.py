"""Pydantic schemas package."""

from app.schemas.notification import (
    BroadcastRequest,
    BroadcastResponse,
    DeliveryResultRead,
    InboundNotification,
    NotificationAction,
    NotificationPayload,
    NotificationTestRequest,
)
from app.schemas.subscription import (
    PreferencesPatch,
    PreferencesUpdate,
    PreferencesUpdateResponse,
    PushSubscriptionIn,
    QuietHoursPatch,
    SubscriptionCreate,
    SubscriptionDelete,
    SuccessResponse,
    VapidPublicKeyResponse,
)

__all__ = [
    "BroadcastRequest",
    "BroadcastResponse",
    "DeliveryResultRead",
    "InboundNotification",
    "NotificationAction",
    "NotificationPayload",
    "NotificationTestRequest",
    "PreferencesPatch",
    "PreferencesUpdate",
    "PreferencesUpdateResponse",
    "PushSubscriptionIn",
    "QuietHoursPatch",
    "SubscriptionCreate",
    "SubscriptionDelete",
    "SuccessResponse",
    "VapidPublicKeyResponse",
]
