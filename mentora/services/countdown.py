"""Asyncio countdown that drives once-per-second ticks."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CountdownTimer:
    """
    Calls ``on_tick`` once per ``interval`` seconds while running.

    The timer only schedules ticks; the owner keeps the remaining time and
    decides when to stop. ``stop()`` may be called from inside ``on_tick``:
    the running tick is allowed to finish and no further tick is scheduled.
    """

    def __init__(self, on_tick: Callable[[], Awaitable[None]], interval: float = 1.0):
        self._on_tick = on_tick
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start (or resume) ticking; no-op if already running."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Stop ticking. Pausing and cancelling are the same operation."""
        self._running = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _run(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self._interval)
                if not self._running:
                    break
                await self._on_tick()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Countdown tick failed: {e}", exc_info=True)
            self._running = False
