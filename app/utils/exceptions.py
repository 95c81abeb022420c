"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class FlashStoreException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class SubscriptionNotFoundError(FlashStoreException):
    """No subscription is registered for the requested endpoint or id."""

    def __init__(self, key: str):
        super().__init__("Subscription not found", {"key": key})
        self.key = key


class TransportRejectedError(FlashStoreException):
    """The push transport refused or failed to accept a message.

    ``permanent`` separates a rejection that will never succeed for this
    endpoint (eviction candidate) from a transient failure (retry candidate).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        permanent: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.permanent = permanent


class EndpointGoneError(TransportRejectedError):
    """The gateway reports the endpoint as expired or unsubscribed."""

    def __init__(self, message: str = "Push endpoint is gone", *, status_code: Optional[int] = 410):
        super().__init__(message, status_code=status_code, permanent=True)


class TransportUnavailableError(TransportRejectedError):
    """Timeout, connection failure or a gateway asking us to come back later."""

    def __init__(self, message: str = "Push transport unavailable", *, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, permanent=False)


class PayloadTooLargeError(TransportRejectedError):
    """The encoded payload does not fit the transport limit even after trimming."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Payload of {size} bytes exceeds the {limit} byte limit",
            status_code=413,
            permanent=True,
            details={"size": size, "limit": limit},
        )


class MalformedPayloadError(FlashStoreException):
    """An inbound push message could not be decoded."""
    pass


class NetworkUnavailableError(FlashStoreException):
    """A fetch failed and neither the cache nor an offline fallback could answer it."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        super().__init__(f"Network unavailable for {url}", {"url": url})
        self.url = url
        self.__cause__ = cause


class PrecacheError(FlashStoreException):
    """A critical resource could not be stored during install."""
    pass


def handle_not_found_error(error: SubscriptionNotFoundError) -> HTTPException:
    """Handle lookups of unknown subscriptions."""
    logger.info("Subscription lookup failed", key=error.key)
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "Subscription not found"},
    )


def handle_transport_error(error: TransportRejectedError) -> HTTPException:
    """Handle push transport failures."""
    logger.error(
        "Error sending notification",
        error=error.message,
        status=error.status_code,
        permanent=error.permanent,
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "Failed to send notification"},
    )


def handle_push_not_configured() -> HTTPException:
    """Handle requests that need VAPID credentials when none are configured."""
    logger.warning("VAPID keys not configured")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": "Push notifications are not configured"},
    )
