"""Send each responsive node its ADJUST for the round."""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List

import structlog

from berkeleysync.api import wire
from berkeleysync.cluster.aggregate import Adjustment
from berkeleysync.cluster.registry import NodeSession, SessionRegistry

logger = structlog.get_logger(__name__)


async def broadcast_adjustments(
    registry: SessionRegistry,
    sessions: Dict[str, NodeSession],
    adjustments: Iterable[Adjustment],
) -> List[str]:
    """Send ADJUST to the sessions that were polled; return the ids reached.

    A session that disconnected or was replaced since it replied gets
    nothing. Send errors are logged and otherwise ignored.
    """
    targets: List[tuple[NodeSession, Adjustment]] = []
    for adj in adjustments:
        session = sessions.get(adj.node_id)
        if session is None or not registry.is_current(session):
            logger.info("adjust_skipped", id=adj.node_id, reason="session_gone")
            continue
        targets.append((session, adj))

    results = await asyncio.gather(
        *(session.send(wire.adjust(adj.offset)) for session, adj in targets),
        return_exceptions=True,
    )

    delivered: List[str] = []
    for (session, adj), result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.warning("adjust_send_failed", id=session.id, error=str(result))
            continue
        delivered.append(session.id)
        logger.info("adjust_sent", id=session.id, offset=round(adj.offset, 3))
    return delivered
