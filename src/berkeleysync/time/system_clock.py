"""Host wall-clock access behind a small port interface.

The synchronization core never touches the host clock directly; a node
that is allowed to mutate it is handed a ``SystemClockPort``.
"""

from __future__ import annotations

import subprocess
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class SystemClockPort(Protocol):
    def get(self) -> float:
        """Host time in seconds since epoch."""
        ...

    def set(self, seconds: float) -> bool:
        """Set the host clock; return True on success."""
        ...


class CommandSystemClock:
    """Sets the host clock by shelling out to the platform's date command.

    Requires privileges; with ``use_sudo`` the command is prefixed by sudo.
    """

    def __init__(self, platform: Optional[str] = None, use_sudo: bool = False,
                 timeout: float = 5.0):
        self.platform = platform or sys.platform
        self.use_sudo = use_sudo
        self.timeout = timeout

    def get(self) -> float:
        return time.time()

    def build_command(self, seconds: float) -> List[str]:
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        if self.platform.startswith("win"):
            # Set-Date takes local time
            local = dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            return ["powershell", "-NoProfile", "-Command", f"Set-Date -Date '{local}'"]
        if self.platform == "darwin":
            cmd = ["date", "-u", dt.strftime("%m%d%H%M%Y.%S")]
        else:
            cmd = ["date", "-u", "-s", f"@{seconds:.6f}"]
        if self.use_sudo:
            cmd = ["sudo", *cmd]
        return cmd

    def set(self, seconds: float) -> bool:
        cmd = self.build_command(seconds)
        try:
            subprocess.run(cmd, check=True, capture_output=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", "replace").strip()
            logger.warning("system_clock_command_failed", cmd=cmd, returncode=e.returncode, stderr=stderr)
            return False
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("system_clock_command_failed", cmd=cmd, error=str(e))
            return False
        logger.info("system_clock_set", target=seconds, cmd=cmd)
        return True
