"""Background loop that removes expired sessions."""

import asyncio
import logging
from typing import Awaitable, Protocol

LOGGER = logging.getLogger(__name__)


class SupportsCleanup(Protocol):
    def cleanup(self) -> Awaitable[int]: ...


class SessionCleaner:
    """Run a session sweep on a fixed interval."""

    def __init__(self, target: SupportsCleanup, interval_seconds: float = 600) -> None:
        """
        Args:
            target: Object whose async `cleanup()` removes expired sessions.
            interval_seconds: Seconds to sleep between cleanup runs.
        """
        self._target = target
        self.interval_seconds = interval_seconds

    async def run_periodic_cleanup(self) -> None:
        """Repeatedly sweep expired sessions until cancelled."""
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self._target.cleanup()
            except asyncio.CancelledError:
                break
            except Exception:
                # Keep the loop alive; the next tick retries.
                LOGGER.exception("Session cleanup run failed")
