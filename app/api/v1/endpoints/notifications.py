"""Push delivery endpoints."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from loguru import logger

from app.api import deps
from app.config import settings
from app.core.preferences import eligibility_filter
from app.schemas.notification import (
    BroadcastRequest,
    BroadcastResponse,
    DeliveryResultRead,
    NotificationTestRequest,
)
from app.schemas.subscription import SuccessResponse
from app.services.push_dispatcher import PushDispatcher, flash_sale_payload
from app.services.subscription_registry import SubscriptionRegistry
from app.utils.exceptions import (
    SubscriptionNotFoundError,
    handle_not_found_error,
    handle_transport_error,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/test", response_model=SuccessResponse)
def send_test_notification(
    payload: NotificationTestRequest,
    dispatcher: PushDispatcher = Depends(deps.get_push_dispatcher),
) -> SuccessResponse:
    """Send the flash-sale announcement to a single endpoint."""

    try:
        result = dispatcher.send_to_endpoint(payload.endpoint, flash_sale_payload())
    except SubscriptionNotFoundError as exc:
        raise handle_not_found_error(exc) from exc
    if result.error is not None:
        raise handle_transport_error(result.error)
    return SuccessResponse(message="Test notification sent")


@router.post("/broadcast", response_model=BroadcastResponse)
def broadcast_notification(
    payload: BroadcastRequest,
    dispatcher: PushDispatcher = Depends(deps.get_push_dispatcher),
    registry: SubscriptionRegistry = Depends(deps.get_registry),
) -> BroadcastResponse:
    """Fan a sale announcement out to every eligible subscriber.

    Subscriptions the gateway reports as gone are evicted afterwards when
    ``PRUNE_GONE_SUBSCRIPTIONS`` is enabled.
    """

    eligible = eligibility_filter(
        payload.categories,
        datetime.now(timezone.utc),
        default_timezone=settings.QUIET_HOURS_TIMEZONE,
    )
    results = dispatcher.broadcast(payload.payload or flash_sale_payload(), eligible)

    evicted = 0
    if settings.PRUNE_GONE_SUBSCRIPTIONS:
        for result in results:
            # a re-registration since the send keeps its entry
            if result.gone and registry.remove_if(result.endpoint, result.subscription_id):
                evicted += 1
        if evicted:
            logger.info("Evicted gone subscriptions", count=evicted)

    failed = sum(1 for result in results if not result.ok)
    return BroadcastResponse(
        sent=len(results) - failed,
        failed=failed,
        evicted=evicted,
        results=[
            DeliveryResultRead(
                subscription_id=result.subscription_id,
                success=result.ok,
                status_code=result.status_code,
                error=result.error.message if result.error else None,
                permanent=result.permanent,
            )
            for result in results
        ],
    )
