"""
Tests for process-level setup: logging and the entry points.
"""

import json
import socket
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

import pytest  # noqa: E402
import structlog  # noqa: E402

from berkeleysync.app.main import coordinator_main  # noqa: E402
from berkeleysync.utils.logging_config import format_timestamp, get_logger, setup_logging  # noqa: E402


class TestLogging:
    def test_logging_setup(self, tmp_path):
        log_file = tmp_path / "logs" / "coordinator.log"
        logger = setup_logging(level="DEBUG", node_id="test-node", component="coordinator", log_path=log_file)
        logger.info("round_complete", reference=1.0)

        component_logger = get_logger("test-component", node_id="test-node")
        component_logger.warning("component_warning")

        assert log_file.exists()
        text = log_file.read_text(encoding="utf-8")
        assert "round_complete" in text
        assert "test-node" in text

    def test_module_loggers_carry_process_identity(self, tmp_path):
        log_file = tmp_path / "node.log"
        setup_logging(level="INFO", node_id="C7", component="node", log_path=log_file)
        structlog.get_logger("berkeleysync.node.identity_check").info("adjust_received", offset=-2.5)

        event = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert event["event"] == "adjust_received"
        assert event["component"] == "node"
        assert event["node_id"] == "C7"
        assert event["logger"] == "berkeleysync.node.identity_check"

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValueError):
            setup_logging(level="LOUD")

    def test_format_timestamp(self):
        assert format_timestamp(0) == "1970-01-01 00:00:00"
        assert format_timestamp(102.55) == "1970-01-01 00:01:42"


def test_coordinator_exits_nonzero_when_port_taken(unused_tcp_port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", unused_tcp_port))
        sock.listen()
        with pytest.raises(SystemExit) as exc:
            coordinator_main(["--host", "127.0.0.1", "--port", str(unused_tcp_port)])
    assert exc.value.code == 1
