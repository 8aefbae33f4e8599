import threading
import time
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class LogicalClock:
    """Simulated node clock: real time plus an adjustable offset and a constant drift.

    ``now() = real_now + offset + drift * (real_now - base_time)``

    ``drift`` is in seconds per second. A negative drift below -1 would make
    the clock run backwards; that is left to whoever configures it.
    """

    def __init__(self, offset: float = 0.0, drift: float = 0.0,
                 time_source: Callable[[], float] = time.time):
        self._time_source = time_source
        self.base_time = time_source()
        self.offset = float(offset)
        self.drift = float(drift)
        self.lock = threading.Lock()

    def now(self) -> float:
        """Current simulated time in seconds since epoch."""
        with self.lock:
            real_now = self._time_source()
            elapsed = real_now - self.base_time
            return real_now + self.offset + self.drift * elapsed

    def adjust(self, delta: float) -> float:
        """Add ``delta`` seconds to the offset and return the new offset."""
        with self.lock:
            self.offset += delta
            new_offset = self.offset
        logger.info("clock_adjusted", applied=round(delta, 6), new_offset=round(new_offset, 6))
        return new_offset

    def rebase(self, absorbed: Optional[float] = None) -> None:
        """Fold offset and accumulated drift into a new base.

        Used after the host clock has been set to this clock's reading: the
        real time source now carries the correction, so ``absorbed`` (the
        offset at the time of that reading, default all of it) is dropped
        and drift is measured from here.
        """
        with self.lock:
            self.base_time = self._time_source()
            self.offset = 0.0 if absorbed is None else self.offset - absorbed
