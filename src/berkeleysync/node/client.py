"""Node side of the protocol.

Connects to the coordinator, registers with its id, answers every
TIME_REQUEST with its logical clock reading and applies every ADJUST.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Dict, Optional

import structlog

from berkeleysync.api import wire
from berkeleysync.node.applier import AdjustmentApplier
from berkeleysync.time.clock import LogicalClock

logger = structlog.get_logger(__name__)

READ_CHUNK = 4096


class NodeClient:
    def __init__(self, node_id: str, host: str = "127.0.0.1", port: int = 9000,
                 clock: Optional[LogicalClock] = None,
                 applier: Optional[AdjustmentApplier] = None):
        self.node_id = node_id
        self.host = host
        self.port = port
        self.clock = clock or LogicalClock()
        self.applier = applier or AdjustmentApplier(self.clock)
        self.replies_sent = 0
        self.adjustments_applied = 0
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._logger = logger.bind(node_id=node_id)

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """Open the connection and register. OSError propagates."""
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        await self._send(wire.registration(self.node_id))
        self._logger.info("connected", coordinator=f"{self.host}:{self.port}")

    async def run(self) -> None:
        """Connect if needed, then serve coordinator messages until disconnected."""
        if self._writer is None:
            await self.connect()
        decoder = wire.JsonlDecoder()
        try:
            while True:
                data = await self._reader.read(READ_CHUNK)
                if not data:
                    break
                for message in decoder.feed(data):
                    await self.handle_message(message)
        except (ConnectionError, OSError) as e:
            self._logger.warning("connection_error", error=str(e))
        finally:
            self._logger.info("disconnected")
            await self.close()

    async def handle_message(self, message: Dict[str, Any]) -> None:
        msg_type = message.get("type")
        if msg_type == wire.TIME_REQUEST:
            t1 = self.clock.now()
            await self._send(wire.time_reply(t1, wire.parse_time_request(message)))
            self.replies_sent += 1
            self._logger.info("time_reply_sent", t1=round(t1, 3))
        elif msg_type == wire.ADJUST:
            offset = wire.parse_adjust(message)
            if offset is None:
                self._logger.debug("message_dropped", type=msg_type)
                return
            self._logger.info("adjust_received", offset=round(offset, 3))
            self.applier.apply(offset)
            self.adjustments_applied += 1
        else:
            self._logger.debug("unknown_message", message=message)

    async def close(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await writer.wait_closed()

    async def _send(self, message: Dict[str, Any]) -> None:
        if self._writer is None:
            raise ConnectionResetError("not connected")
        self._writer.write(wire.encode(message))
        await self._writer.drain()
