"""Command-line entry points for the coordinator and for a node.

  berkeley-coordinator --port 9000 --interval 10
  berkeley-node --id C1 --host 127.0.0.1 --port 9000 --offset 2 --drift 0.0001

Flags override environment settings (BERKELEY_COORDINATOR_*, BERKELEY_NODE_*).
"""

from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from pydantic import ValidationError

from berkeleysync.cluster.coordinator import Coordinator
from berkeleysync.config.settings import CoordinatorSettings, NodeSettings
from berkeleysync.node.applier import AdjustmentApplier
from berkeleysync.node.client import NodeClient
from berkeleysync.time.clock import LogicalClock
from berkeleysync.time.system_clock import CommandSystemClock
from berkeleysync.utils.logging_config import setup_logging


def _overrides(args: argparse.Namespace, *names: str) -> dict:
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def build_coordinator_settings(argv: Optional[List[str]] = None) -> CoordinatorSettings:
    parser = argparse.ArgumentParser(description="Berkeley clock synchronization coordinator")
    parser.add_argument("--host", help="Listen address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (default: 9000)")
    parser.add_argument("--interval", type=float, help="Seconds between rounds (default: 10)")
    parser.add_argument("--timeout", dest="reply_timeout", type=float,
                        help="Seconds to wait for each node's reply (default: 3)")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default: INFO)")
    args = parser.parse_args(argv)
    try:
        return CoordinatorSettings(**_overrides(args, "host", "port", "interval", "reply_timeout", "log_level"))
    except ValidationError as e:
        parser.error(str(e))


def build_node_settings(argv: Optional[List[str]] = None) -> NodeSettings:
    parser = argparse.ArgumentParser(description="Berkeley clock synchronization node")
    parser.add_argument("--id", help="Node id reported to the coordinator (default: client-<random>)")
    parser.add_argument("--host", help="Coordinator host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Coordinator port (default: 9000)")
    parser.add_argument("--offset", type=float, help="Initial simulated clock offset in seconds")
    parser.add_argument("--drift", type=float, help="Simulated drift in seconds per second")
    parser.add_argument("--set-system-clock", dest="set_system_clock", action="store_true", default=None,
                        help="Also set the host clock on every adjustment (needs privileges)")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default: INFO)")
    args = parser.parse_args(argv)
    try:
        return NodeSettings(**_overrides(args, "id", "host", "port", "offset", "drift",
                                         "set_system_clock", "log_level"))
    except ValidationError as e:
        parser.error(str(e))


def coordinator_main(argv: Optional[List[str]] = None) -> int:
    settings = build_coordinator_settings(argv)
    log = setup_logging(level=settings.log_level, component="coordinator")
    coordinator = Coordinator(
        host=settings.host,
        port=settings.port,
        interval=settings.interval,
        reply_timeout=settings.reply_timeout,
    )

    async def _run() -> None:
        try:
            await coordinator.start()
        except OSError as e:
            log.error("bind_failed", host=settings.host, port=settings.port, error=str(e))
            raise SystemExit(1)
        await coordinator.serve_forever()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard_interrupt")
    return 0


def node_main(argv: Optional[List[str]] = None) -> int:
    settings = build_node_settings(argv)
    log = setup_logging(level=settings.log_level, node_id=settings.id, component="node")
    clock = LogicalClock(offset=settings.offset, drift=settings.drift)
    system_clock = CommandSystemClock() if settings.set_system_clock else None
    client = NodeClient(
        settings.id,
        host=settings.host,
        port=settings.port,
        clock=clock,
        applier=AdjustmentApplier(clock, system_clock),
    )
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard_interrupt")
    except OSError as e:
        log.error("connect_failed", host=settings.host, port=settings.port, error=str(e))
        raise SystemExit(1)
    return 0


if __name__ == "__main__":
    raise SystemExit(coordinator_main())
