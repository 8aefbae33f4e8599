#!/usr/bin/env python3
"""Run the Berkeley coordinator.

Usage examples:
  - python scripts/run_coordinator.py
  - python scripts/run_coordinator.py --port 9000 --interval 10 --timeout 3

Exits with status 1 if the listening port cannot be bound.
"""

from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from berkeleysync.app.main import coordinator_main  # noqa: E402


if __name__ == "__main__":
    sys.exit(coordinator_main())
