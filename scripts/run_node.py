#!/usr/bin/env python3
"""Run a single Berkeley node as its own process.

Usage examples:
  - python scripts/run_node.py --id C1
  - python scripts/run_node.py --id C2 --offset 2 --drift 0.0001
  - python scripts/run_node.py --id C3 --host 10.0.0.5 --port 9000 --set-system-clock

Start several of these with different offsets/drifts to watch them converge.
"""

from __future__ import annotations

import sys
from pathlib import Path


# Ensure src is on sys.path when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from berkeleysync.app.main import node_main  # noqa: E402


if __name__ == "__main__":
    sys.exit(node_main())
