"""Event lifetimes for the client worker.

A handler registers every piece of derived asynchronous work with
:meth:`ExtendableEvent.wait_until`; whoever dispatched the event awaits
:meth:`ExtendableEvent.settle`, which only returns once all of it is done.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, List

from loguru import logger


class ExtendableEvent:
    """Track the outstanding work spawned while handling one event."""

    def __init__(self, event_type: str, *, strict: bool = False) -> None:
        self.type = event_type
        self.strict = strict
        self._pending: List[asyncio.Future[Any]] = []
        self.errors: List[BaseException] = []

    def wait_until(self, work: Awaitable[Any]) -> asyncio.Future[Any]:
        """Extend the event's lifetime until ``work`` completes."""

        future = asyncio.ensure_future(work)
        self._pending.append(future)
        return future

    @property
    def pending(self) -> int:
        return sum(1 for future in self._pending if not future.done())

    async def settle(self) -> List[Any]:
        """Wait for all registered work, including work added while waiting.

        Failures are logged and collected in :attr:`errors`. A strict event
        re-raises the first failure once everything has finished.
        """

        results: List[Any] = []
        settled = 0
        while settled < len(self._pending):
            batch = self._pending[settled:]
            settled = len(self._pending)
            for outcome in await asyncio.gather(*batch, return_exceptions=True):
                if isinstance(outcome, BaseException):
                    logger.warning("Event work failed", event=self.type, error=repr(outcome))
                    self.errors.append(outcome)
                else:
                    results.append(outcome)

        if self.strict and self.errors:
            raise self.errors[0]
        return results


__all__ = ["ExtendableEvent"]
