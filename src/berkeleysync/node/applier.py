"""Apply ADJUST instructions to the node's clock(s)."""

from __future__ import annotations

import asyncio
from typing import Optional, Set

import structlog

from berkeleysync.time.clock import LogicalClock
from berkeleysync.time.system_clock import SystemClockPort

logger = structlog.get_logger(__name__)


class AdjustmentApplier:
    """Adds each received offset to the logical clock.

    With a ``system_clock`` port, the corrected reading is also pushed to the
    host clock in the background. The protocol never waits on the port;
    failures are logged for the operator and the logical offset is kept.
    """

    def __init__(self, clock: LogicalClock, system_clock: Optional[SystemClockPort] = None):
        self.clock = clock
        self.system_clock = system_clock
        self._tasks: Set[asyncio.Task] = set()
        self._port_lock = asyncio.Lock()

    def apply(self, offset: float) -> Optional[asyncio.Task]:
        self.clock.adjust(offset)
        if self.system_clock is None:
            return None
        task = asyncio.create_task(self._set_system_clock())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _set_system_clock(self) -> bool:
        # One port call at a time; each pushes only the offset not yet absorbed.
        async with self._port_lock:
            absorbed = self.clock.offset
            target = self.clock.now()
            try:
                ok = await asyncio.to_thread(self.system_clock.set, target)
            except Exception as e:
                logger.warning("system_clock_set_failed", target=target, error=str(e))
                return False
            if not ok:
                logger.warning("system_clock_set_failed", target=target)
                return False
            self.clock.rebase(absorbed)
        logger.info("system_clock_synced", target=round(target, 3))
        return True

    async def drain(self) -> None:
        """Wait for pending host clock updates."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
