"""Subscriber delivery preferences and the eligibility rules built on them."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, time
from typing import Any, Callable, Iterable, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_CATEGORIES: frozenset[str] = frozenset({"electronics"})


def validate_timezone(name: Optional[str]) -> Optional[str]:
    """Return ``name`` if it is a resolvable IANA zone, otherwise raise ``ValueError``."""

    if name is None:
        return None
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValueError(f"Unknown time zone: {name!r}") from exc
    return name


@dataclass(frozen=True)
class QuietHours:
    """Local time-of-day window during which delivery is suppressed."""

    enabled: bool = False
    start: time = time(22, 0)
    end: time = time(8, 0)
    timezone: Optional[str] = None


@dataclass(frozen=True)
class Preferences:
    """Per-subscription delivery policy."""

    flash_sales_enabled: bool = True
    categories: frozenset[str] = DEFAULT_CATEGORIES
    quiet_hours: QuietHours = field(default_factory=QuietHours)


def merge_quiet_hours(current: QuietHours, patch: Mapping[str, Any]) -> QuietHours:
    """Overlay the sub-fields present in ``patch``; absent ones keep their value."""

    known = {key: value for key, value in patch.items() if key in QuietHours.__dataclass_fields__}
    return replace(current, **known)


def merge_preferences(current: Preferences, patch: Mapping[str, Any]) -> Preferences:
    """Apply a partial preference update field by field.

    Flat fields are replaced, ``quiet_hours`` is merged sub-field by sub-field
    and ``categories`` is replaced as a whole set. An empty category set falls
    back to :data:`DEFAULT_CATEGORIES`.
    """

    merged = current
    if patch.get("flash_sales_enabled") is not None:
        merged = replace(merged, flash_sales_enabled=bool(patch["flash_sales_enabled"]))
    if patch.get("categories") is not None:
        categories = frozenset(patch["categories"]) or DEFAULT_CATEGORIES
        merged = replace(merged, categories=categories)
    if patch.get("quiet_hours") is not None:
        merged = replace(merged, quiet_hours=merge_quiet_hours(merged.quiet_hours, patch["quiet_hours"]))
    return merged


def _local_time(at: datetime, zone: Optional[str]) -> time:
    if at.tzinfo is None:
        return at.time()
    if zone:
        return at.astimezone(ZoneInfo(zone)).time()
    return at.astimezone().time()


def is_within_quiet_hours(
    quiet_hours: QuietHours, at: datetime, default_timezone: Optional[str] = None
) -> bool:
    """Return whether ``at`` falls in ``[start, end)``, wrapping past midnight."""

    if not quiet_hours.enabled:
        return False
    start, end = quiet_hours.start, quiet_hours.end
    if start == end:
        return False
    now = _local_time(at, quiet_hours.timezone or default_timezone).replace(tzinfo=None)
    if start < end:
        return start <= now < end
    return now >= start or now < end


def is_eligible(
    preferences: Preferences,
    event_categories: Iterable[str],
    at: datetime,
    default_timezone: Optional[str] = None,
) -> bool:
    """Decide whether a subscriber should receive a flash-sale event."""

    if not preferences.flash_sales_enabled:
        return False
    categories = set(event_categories)
    if preferences.categories and categories and preferences.categories.isdisjoint(categories):
        return False
    return not is_within_quiet_hours(preferences.quiet_hours, at, default_timezone)


def eligibility_filter(
    event_categories: Iterable[str],
    at: datetime,
    default_timezone: Optional[str] = None,
) -> Callable[[Preferences], bool]:
    """Bind an event's categories and send time into a preference predicate."""

    categories = frozenset(event_categories)

    def _eligible(preferences: Preferences) -> bool:
        return is_eligible(preferences, categories, at, default_timezone)

    return _eligible


__all__ = [
    "DEFAULT_CATEGORIES",
    "Preferences",
    "QuietHours",
    "eligibility_filter",
    "is_eligible",
    "is_within_quiet_hours",
    "merge_preferences",
    "merge_quiet_hours",
    "validate_timezone",
]
