"""One request/reply/timeout exchange with a single node.

The coordinator stamps ``t0`` before sending TIME_REQUEST and ``t2`` when
the matching TIME_REPLY arrives. Assuming symmetric one-way delay, the
node's clock read ``t1`` was taken half a round trip before ``t2``:

    rtt = t2 - t0
    estimate = t1 + rtt / 2

No reply within the timeout is a normal outcome (``None``), not an error.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from berkeleysync.api import wire
from berkeleysync.cluster.registry import NodeSession

logger = structlog.get_logger(__name__)

DEFAULT_REPLY_TIMEOUT = 3.0


@dataclass(frozen=True)
class TimeSample:
    node_id: str
    t0: float
    t1: float
    t2: float
    rtt: float
    estimate: float

    @classmethod
    def from_exchange(cls, node_id: str, t0: float, t1: float, t2: float) -> "TimeSample":
        rtt = t2 - t0
        return cls(node_id=node_id, t0=t0, t1=t1, t2=t2, rtt=rtt, estimate=t1 + rtt / 2)


async def poll_node(
    session: NodeSession,
    timeout: float = DEFAULT_REPLY_TIMEOUT,
    clock: Callable[[], float] = time.time,
) -> Optional[TimeSample]:
    """Ask one node for its time; return a sample, or None on timeout/transport error."""
    t0 = clock()
    future = session.expect_reply(t0)
    try:
        await session.send(wire.time_request(t0))
        reply = await asyncio.wait_for(future, timeout=timeout)
    except asyncio.TimeoutError:
        logger.info("no_reply", id=session.id, timeout=timeout)
        return None
    except (ConnectionError, OSError) as e:
        logger.warning("poll_transport_error", id=session.id, error=str(e))
        return None
    finally:
        session.release(future)
    t2 = clock()

    # an echoed t0 only filters stale replies; the estimate uses the local t0
    sample = TimeSample.from_exchange(session.id, t0, wire.parse_time_reply(reply), t2)
    logger.info(
        "time_sample",
        id=sample.node_id,
        t1=round(sample.t1, 3),
        rtt=round(sample.rtt, 3),
        estimate=round(sample.estimate, 3),
    )
    return sample
