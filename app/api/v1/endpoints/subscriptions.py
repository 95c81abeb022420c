"""Push subscription endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header

from app.api import deps
from app.schemas.subscription import (
    PreferencesUpdate,
    PreferencesUpdateResponse,
    SubscriptionCreate,
    SubscriptionDelete,
    SuccessResponse,
    VapidPublicKeyResponse,
)
from app.services.subscription_registry import SubscriptionRegistry

router = APIRouter(tags=["subscriptions"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
def read_vapid_public_key(public_key: str = Depends(deps.get_vapid_public_key)) -> VapidPublicKeyResponse:
    """Expose the application server key clients subscribe with."""

    return VapidPublicKeyResponse(public_key=public_key)


@router.post("/subscriptions", response_model=SuccessResponse)
def create_subscription(
    payload: SubscriptionCreate,
    user_agent: Optional[str] = Header(default=None),
    registry: SubscriptionRegistry = Depends(deps.get_registry),
) -> SuccessResponse:
    """Register a push endpoint; registering it again replaces the old entry."""

    registry.upsert(
        payload.subscription.endpoint,
        payload.subscription.keys,
        payload.preferences.as_patch(),
        metadata=user_agent,
        expiration_time=payload.subscription.expiration_time,
    )
    return SuccessResponse(message="Subscription saved")


@router.delete("/subscriptions", response_model=SuccessResponse)
def delete_subscription(
    payload: SubscriptionDelete,
    registry: SubscriptionRegistry = Depends(deps.get_registry),
) -> SuccessResponse:
    registry.remove(payload.endpoint)
    return SuccessResponse(message="Subscription removed")


@router.put("/subscriptions/preferences", response_model=PreferencesUpdateResponse)
def update_preferences(
    payload: PreferencesUpdate,
    registry: SubscriptionRegistry = Depends(deps.get_registry),
) -> PreferencesUpdateResponse:
    """Merge a partial preference update into an existing subscription."""

    updated = registry.update_preferences(payload.endpoint, payload.preferences.as_patch())
    message = "Preferences updated" if updated else "Subscription not found"
    return PreferencesUpdateResponse(message=message, updated=updated)
