#!/usr/bin/env python3
"""Start a coordinator and several skewed nodes in one process and watch them converge.

Usage examples:
  - python scripts/run_cluster.py
  - python scripts/run_cluster.py --offsets 2 -1.5 0.5 --drift 0.0001 --rounds 6 --interval 1
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from berkeleysync.cluster.coordinator import Coordinator  # noqa: E402
from berkeleysync.node.client import NodeClient  # noqa: E402
from berkeleysync.time.clock import LogicalClock  # noqa: E402
from berkeleysync.utils.logging_config import setup_logging  # noqa: E402


def print_clocks(label: str, clients: list[NodeClient]) -> None:
    now = time.time()
    print(f"\n[{label}] offsets vs coordinator:")
    for client in clients:
        print(f"  {client.node_id}: {client.clock.now() - now:+.4f}s")


async def run(args: argparse.Namespace) -> None:
    coordinator = Coordinator("127.0.0.1", args.port, interval=args.interval, reply_timeout=args.timeout)
    await coordinator.start()
    port = coordinator.bound_port

    clients = [
        NodeClient(f"C{i + 1}", "127.0.0.1", port, clock=LogicalClock(offset=offset, drift=args.drift))
        for i, offset in enumerate(args.offsets)
    ]
    tasks = [asyncio.create_task(c.run()) for c in clients]
    try:
        while len(coordinator.registry) < len(clients):
            await asyncio.sleep(0.05)
        print_clocks("start", clients)
        for n in range(1, args.rounds + 1):
            result = await coordinator.run_round()
            await asyncio.sleep(0.05)
            print(f"\nround {n}: reference={result.reference_time:.3f} "
                  f"coordinator_offset={result.coordinator_offset:+.4f}s")
            print_clocks(f"after round {n}", clients)
            await asyncio.sleep(args.interval)
    finally:
        await coordinator.stop()
        for t in tasks:
            t.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await t


def main() -> None:
    parser = argparse.ArgumentParser(description="Local Berkeley synchronization demo")
    parser.add_argument("--port", type=int, default=0, help="Coordinator port (default: any free port)")
    parser.add_argument("--offsets", type=float, nargs="+", default=[2.0, -1.5, 0.5],
                        help="Initial offset of each node in seconds")
    parser.add_argument("--drift", type=float, default=0.0, help="Drift applied to every node")
    parser.add_argument("--rounds", type=int, default=5)
    parser.add_argument("--interval", type=float, default=0.5, help="Pause between rounds")
    parser.add_argument("--timeout", type=float, default=3.0, help="Reply timeout per node")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    setup_logging(level=args.log_level, component="demo")
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nDemo stopped.")


if __name__ == "__main__":
    main()
