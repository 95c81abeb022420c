"""Pydantic models for push subscription API interactions."""
from __future__ import annotations

from datetime import time
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.core.preferences import validate_timezone


class PushSubscriptionIn(BaseModel):
    """Subscription object produced by the browser's PushManager."""

    endpoint: str = Field(min_length=1)
    keys: Dict[str, str] = Field(default_factory=dict)
    expiration_time: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("expirationTime", "expiration_time")
    )


class QuietHoursPatch(BaseModel):
    """Partial quiet-hours update; ``start``/``end`` accept ``"HH:MM"``."""

    enabled: Optional[bool] = None
    start: Optional[time] = None
    end: Optional[time] = None
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject zone names the server cannot resolve."""
        return validate_timezone(v)


class PreferencesPatch(BaseModel):
    """Partial preference update; unset fields leave the stored value alone."""

    flash_sales_enabled: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("flashSales", "flashSalesEnabled", "flash_sales_enabled"),
    )
    categories: Optional[List[str]] = Field(
        default=None, validation_alias=AliasChoices("categories", "categoryFilter")
    )
    quiet_hours: Optional[QuietHoursPatch] = Field(
        default=None, validation_alias=AliasChoices("quietHours", "quiet_hours")
    )

    model_config = ConfigDict(extra="ignore")

    def as_patch(self) -> Dict[str, Any]:
        """Return only the fields the caller actually sent."""

        return self.model_dump(exclude_unset=True, exclude_none=True)


class SubscriptionCreate(BaseModel):
    """Body of ``POST /subscriptions``."""

    subscription: PushSubscriptionIn
    preferences: PreferencesPatch = Field(default_factory=PreferencesPatch)


class SubscriptionDelete(BaseModel):
    """Body of ``DELETE /subscriptions``."""

    endpoint: str = Field(min_length=1)


class PreferencesUpdate(BaseModel):
    """Body of ``PUT /subscriptions/preferences``."""

    endpoint: str = Field(min_length=1)
    preferences: PreferencesPatch


class SuccessResponse(BaseModel):
    """Acknowledgement returned by the subscription endpoints."""

    success: bool = True
    message: str


class PreferencesUpdateResponse(SuccessResponse):
    updated: bool


class VapidPublicKeyResponse(BaseModel):
    """VAPID public key for the frontend."""

    public_key: str = Field(serialization_alias="publicKey")
