"""
Periodic session refresh.

Runs a background asyncio task that wakes every interval, asks whether the
current session is close to expiry and refreshes it if so.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from .logging_config import get_logger

logger = get_logger(__name__)


class SessionMonitor:
    """
    Recurring session check.

    Args:
        check: Coroutine run on every tick; it decides whether to refresh
        interval: Seconds between ticks
    """

    def __init__(self, check: Callable[[], Awaitable[None]], interval: float = 60.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._check = check
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="session-monitor"
        )
        logger.info("Session monitoring started", interval=self.interval)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._check()
            except Exception as e:
                logger.warning("Session monitoring error", error=str(e))

    def stop(self) -> None:
        """Cancel the pending tick. Stopping a stopped monitor is a no-op."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        logger.info("Session monitoring stopped")

    async def wait_stopped(self) -> None:
        """Stop and wait until the task has finished unwinding."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
