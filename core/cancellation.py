"""
Cancellation tokens for long-running generation jobs.

A token is created by the caller, handed to the poller, and cancelled from
anywhere on the same event loop (a signal handler, a UI action, another
task). The poller races every suspension point against ``wait()``.

Usage:
    token = CancellationToken()
    task = asyncio.create_task(runner.generate(..., token=token))

    # later
    token.cancel("user pressed stop")
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal backed by an asyncio.Event."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "Cancelled by caller"):
        """Signal cancellation. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug(f"Cancellation requested: {reason}")

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken({state})"
