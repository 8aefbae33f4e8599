"""Session registry: node id -> live connection.

Owned by the coordinator. Registration, removal and round snapshots all go
through this object; nothing else keeps a map of connections.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from berkeleysync.api import wire

logger = structlog.get_logger(__name__)


class ExchangeInProgressError(RuntimeError):
    """A second request/reply exchange was started on a busy session."""


@dataclass(eq=False)
class NodeSession:
    id: str
    connection: asyncio.StreamWriter
    last_seen_at: float = field(default_factory=time.time)
    _pending: Optional[asyncio.Future] = field(default=None, repr=False)
    _expected_t0: Optional[float] = field(default=None, repr=False)

    @property
    def peer(self) -> str:
        info = self.connection.get_extra_info("peername")
        if isinstance(info, tuple) and len(info) >= 2:
            return f"{info[0]}:{info[1]}"
        return str(info)

    @property
    def awaiting_reply(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def touch(self, timestamp: float | None = None) -> None:
        self.last_seen_at = timestamp if timestamp is not None else time.time()

    async def send(self, message: Dict[str, Any]) -> None:
        if self.connection.is_closing():
            raise ConnectionResetError(f"connection to {self.id} is closed")
        self.connection.write(wire.encode(message))
        await self.connection.drain()

    def expect_reply(self, t0: Optional[float] = None) -> asyncio.Future:
        """Open the single reply slot for this session.

        With ``t0`` set, a reply echoing a different t0 belongs to an older
        exchange and is discarded. Replies without an echo are accepted.
        """
        if self.awaiting_reply:
            raise ExchangeInProgressError(f"exchange already in flight for {self.id}")
        self._expected_t0 = t0
        self._pending = asyncio.get_running_loop().create_future()
        return self._pending

    def release(self, future: asyncio.Future) -> None:
        """Close the reply slot; later replies are discarded."""
        if self._pending is future:
            self._pending = None

    def deliver(self, message: Dict[str, Any]) -> bool:
        """Resolve the open exchange with a TIME_REPLY. Returns False if discarded."""
        if wire.parse_time_reply(message) is None:
            return False
        future = self._pending
        if future is None or future.done():
            return False
        echoed = message.get("t0")
        if echoed is not None and self._expected_t0 is not None and echoed != self._expected_t0:
            return False
        future.set_result(message)
        return True

    def abandon(self) -> None:
        """Fail an open exchange because the connection went away."""
        future = self._pending
        if future is not None and not future.done():
            future.set_exception(ConnectionResetError(f"connection to {self.id} closed"))


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, NodeSession] = {}

    def register(self, node_id: str, connection: asyncio.StreamWriter) -> bool:
        """Insert or replace the session for ``node_id``.

        Returns True when a prior session was replaced. The replaced
        connection is left as is; nothing is routed to it any more.
        """
        replaced = node_id in self._sessions
        self._sessions[node_id] = NodeSession(id=node_id, connection=connection)
        logger.info("node_registered", id=node_id, replaced=replaced, total=len(self._sessions))
        return replaced

    def remove(self, node_id: str, session: Optional[NodeSession] = None) -> bool:
        """Drop the mapping for ``node_id``; idempotent.

        When ``session`` is given, the mapping is only dropped if it still
        points at that session, so a replaced connection closing late does
        not evict its successor.
        """
        current = self._sessions.get(node_id)
        if current is None:
            return False
        if session is not None and current is not session:
            return False
        del self._sessions[node_id]
        logger.info("node_removed", id=node_id, total=len(self._sessions))
        return True

    def get(self, node_id: str) -> Optional[NodeSession]:
        return self._sessions.get(node_id)

    def is_current(self, session: NodeSession) -> bool:
        return self._sessions.get(session.id) is session

    def snapshot(self) -> List[NodeSession]:
        """Sessions registered at call time, as a detached list."""
        return list(self._sessions.values())

    def ids(self) -> List[str]:
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._sessions
