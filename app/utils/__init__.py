"""Utility helpers package."""

from app.utils.exceptions import FlashStoreException

__all__ = ["FlashStoreException"]
