"""Fixed-interval round timer.

Ticks every ``interval`` seconds on the event loop clock. Each tick starts
a round unless the previous one is still running, in which case the tick
is skipped; rounds never overlap.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class RoundScheduler:
    def __init__(self, run_round: Callable[[], Awaitable[Any]], interval: float = 10.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._run_round = run_round
        self.interval = interval
        self._current: Optional[asyncio.Task] = None
        self.rounds_started = 0
        self.rounds_skipped = 0

    @property
    def round_in_flight(self) -> bool:
        return self._current is not None and not self._current.done()

    async def run(self) -> None:
        """Tick forever; cancel to stop."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        try:
            while True:
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
                next_tick += self.interval
                self.tick()
        finally:
            await self.stop()

    def tick(self) -> Optional[asyncio.Task]:
        """Start a round now unless one is in flight."""
        if self.round_in_flight:
            self.rounds_skipped += 1
            logger.warning("round_skipped", reason="previous_round_in_flight")
            return None
        self.rounds_started += 1
        self._current = asyncio.create_task(self._guarded_round())
        return self._current

    async def _guarded_round(self) -> None:
        try:
            await self._run_round()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("round_failed")

    async def stop(self) -> None:
        task, self._current = self._current, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
