"""
Cooperative cancellation for poll loops.

A CancellationToken is checked at the top of every poll iteration and before
every sleep. Sleeping through the token wakes up as soon as cancel() is
called, so a cancelled loop releases its concurrency slot immediately
instead of finishing its poll interval.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class CancellationToken:

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.debug("CancellationToken | cancelled reason=%s", reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """
        Sleep up to `delay` seconds. Returns True if the token was cancelled
        before or during the sleep, False if the full delay elapsed.
        """
        if self._event.is_set():
            return True
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
