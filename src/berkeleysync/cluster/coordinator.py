"""Coordinator process: accepts nodes and drives Berkeley rounds.

Responsibilities:
- Listen for node connections and register them on their first message
- Route TIME_REPLY messages to the exchange waiting on that session
- Every interval, poll all nodes concurrently, average, and send ADJUST
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Callable, List, Optional, Set

import structlog

from berkeleysync.api import wire
from berkeleysync.cluster.aggregate import RoundResult, aggregate
from berkeleysync.cluster.broadcast import broadcast_adjustments
from berkeleysync.cluster.poll import DEFAULT_REPLY_TIMEOUT, TimeSample, poll_node
from berkeleysync.cluster.registry import ExchangeInProgressError, NodeSession, SessionRegistry
from berkeleysync.cluster.scheduler import RoundScheduler
from berkeleysync.utils.logging_config import format_timestamp

logger = structlog.get_logger(__name__)

READ_CHUNK = 4096


class Coordinator:
    def __init__(self, host: str = "0.0.0.0", port: int = 9000, interval: float = 10.0,
                 reply_timeout: float = DEFAULT_REPLY_TIMEOUT,
                 clock: Callable[[], float] = time.time,
                 registry: Optional[SessionRegistry] = None):
        self.host = host
        self.port = port
        self.reply_timeout = reply_timeout
        self.clock = clock
        self.registry = registry or SessionRegistry()
        self.scheduler = RoundScheduler(self.run_round, interval)
        self.last_result: Optional[RoundResult] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._connections: Set[asyncio.StreamWriter] = set()

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (useful when started with port 0)."""
        if not self._server or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Bind the listening socket. OSError from bind propagates."""
        self._server = await asyncio.start_server(self._handle_node, self.host, self.port)
        logger.info("coordinator_started", host=self.host, port=self.bound_port,
                    interval=self.scheduler.interval, reply_timeout=self.reply_timeout)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        try:
            await asyncio.gather(self._server.serve_forever(), self.scheduler.run())
        finally:
            await self.stop()

    async def stop(self) -> None:
        await self.scheduler.stop()
        for writer in list(self._connections):
            writer.close()
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("coordinator_stopped")

    async def _handle_node(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Per-connection reader: registration, then reply routing."""
        self._connections.add(writer)
        decoder = wire.JsonlDecoder()
        session: Optional[NodeSession] = None
        peername = writer.get_extra_info("peername")
        peer = f"{peername[0]}:{peername[1]}" if isinstance(peername, tuple) else str(peername)
        try:
            while True:
                data = await reader.read(READ_CHUNK)
                if not data:
                    break
                for message in decoder.feed(data):
                    if session is None:
                        node_id = wire.parse_registration(message) or peer
                        self.registry.register(node_id, writer)
                        session = self.registry.get(node_id)
                        logger.info("node_connected", id=node_id, peer=peer)
                        continue
                    session.touch()
                    if not session.deliver(message):
                        logger.debug("message_dropped", id=session.id, type=message.get("type"))
        except (ConnectionError, OSError) as e:
            logger.warning("connection_error", peer=peer, error=str(e))
        finally:
            self._connections.discard(writer)
            if session is not None:
                session.abandon()
                self.registry.remove(session.id, session)
                logger.info("node_disconnected", id=session.id, peer=peer)
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()

    async def _poll(self, session: NodeSession) -> Optional[TimeSample]:
        if not self.registry.is_current(session):
            # disconnected or replaced since the snapshot
            return None
        try:
            return await poll_node(session, self.reply_timeout, self.clock)
        except ExchangeInProgressError as e:
            logger.error("exchange_overlap", id=session.id, error=str(e))
            return None

    async def run_round(self) -> RoundResult:
        """Poll every registered node, aggregate, and broadcast adjustments."""
        sessions = self.registry.snapshot()
        if sessions:
            logger.info("round_started", nodes=[s.id for s in sessions])
        else:
            logger.info("no_nodes_connected")

        outcomes = await asyncio.gather(*(self._poll(s) for s in sessions))
        samples: List[TimeSample] = [o for o in outcomes if o is not None]
        timed_out = [s.id for s, o in zip(sessions, outcomes) if o is None]

        # replaced or disconnected mid-round: no ADJUST can reach it, keep it out of the mean
        stale = [s.id for s, o in zip(sessions, outcomes) if o is not None and not self.registry.is_current(s)]
        if stale:
            logger.info("stale_samples_dropped", ids=stale)
            samples = [o for s, o in zip(sessions, outcomes) if o is not None and self.registry.is_current(s)]

        coordinator_time = self.clock()
        result = aggregate(coordinator_time, samples, timed_out)
        result.delivered = await broadcast_adjustments(
            self.registry, {s.id: s for s in sessions}, result.adjustments
        )

        logger.info(
            "round_complete",
            coordinator_time=round(coordinator_time, 3),
            coordinator_time_iso=format_timestamp(coordinator_time),
            reference=round(result.reference_time, 3),
            reference_iso=format_timestamp(result.reference_time),
            responded=[s.node_id for s in samples],
            timed_out=timed_out,
            coordinator_offset=round(result.coordinator_offset, 3),
        )
        self.last_result = result
        return result
