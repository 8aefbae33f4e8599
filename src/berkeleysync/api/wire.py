"""Line-delimited JSON wire protocol between coordinator and nodes.

Each message is exactly one JSON object terminated by ``\\n``:

- registration  node -> coordinator (first message): {"id": ...}
- TIME_REQUEST  coordinator -> node: {"type": "TIME_REQUEST", "t0": ...}
- TIME_REPLY    node -> coordinator: {"type": "TIME_REPLY", "t1": ..., "t0": ...}
- ADJUST        coordinator -> node: {"type": "ADJUST", "offset": ...}

Malformed lines are dropped silently; there is no protocol error message.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Optional

TIME_REQUEST = "TIME_REQUEST"
TIME_REPLY = "TIME_REPLY"
ADJUST = "ADJUST"

MAX_LINE_BYTES = 64 * 1024


def encode(message: Dict[str, Any]) -> bytes:
    """Serialize one message as a single newline-terminated JSON line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


class JsonlDecoder:
    """Incremental decoder for a newline-delimited JSON byte stream.

    Tolerates several messages concatenated in one read and buffers an
    incomplete trailing fragment until its newline arrives. Lines that are
    not valid UTF-8, not valid JSON, or not a JSON object are dropped.
    """

    def __init__(self, max_line_bytes: int = MAX_LINE_BYTES):
        self.max_line_bytes = max_line_bytes
        self._buffer = bytearray()
        self._discarding = False
        self.dropped = 0

    def feed(self, data: bytes) -> List[Dict[str, Any]]:
        self._buffer.extend(data)
        messages: List[Dict[str, Any]] = []
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            if self._discarding:
                # tail of an oversized line
                self._discarding = False
                continue
            message = self._parse_line(line)
            if message is not None:
                messages.append(message)

        if len(self._buffer) > self.max_line_bytes:
            self._buffer.clear()
            self._discarding = True
            self.dropped += 1
        return messages

    @property
    def pending(self) -> int:
        """Number of buffered bytes waiting for a newline."""
        return len(self._buffer)

    def _parse_line(self, line: bytes) -> Optional[Dict[str, Any]]:
        if not line.strip():
            return None
        try:
            message = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            self.dropped += 1
            return None
        if not isinstance(message, dict):
            self.dropped += 1
            return None
        return message


def decode_lines(data: bytes) -> List[Dict[str, Any]]:
    """Decode a complete chunk of JSONL data (trailing fragment ignored)."""
    return JsonlDecoder().feed(data)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


# Message constructors

def registration(node_id: str) -> Dict[str, Any]:
    return {"id": node_id}


def time_request(t0: float) -> Dict[str, Any]:
    return {"type": TIME_REQUEST, "t0": t0}


def time_reply(t1: float, t0: Optional[float] = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"type": TIME_REPLY, "t1": t1}
    if t0 is not None:
        message["t0"] = t0
    return message


def adjust(offset: float) -> Dict[str, Any]:
    return {"type": ADJUST, "offset": offset}


# Validators: return the useful field, or None when the message does not qualify

def parse_registration(message: Dict[str, Any]) -> Optional[str]:
    """Return the self-reported id of a registration message, if usable."""
    node_id = message.get("id")
    if isinstance(node_id, str) and node_id.strip():
        return node_id
    if isinstance(node_id, (int, float)) and not isinstance(node_id, bool):
        return str(node_id)
    return None


def parse_time_request(message: Dict[str, Any]) -> Optional[float]:
    if message.get("type") != TIME_REQUEST:
        return None
    return _number(message.get("t0"))


def parse_time_reply(message: Dict[str, Any]) -> Optional[float]:
    if message.get("type") != TIME_REPLY:
        return None
    return _number(message.get("t1"))


def parse_adjust(message: Dict[str, Any]) -> Optional[float]:
    if message.get("type") != ADJUST:
        return None
    return _number(message.get("offset"))
