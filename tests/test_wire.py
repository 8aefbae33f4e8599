import sys
from pathlib import Path

# Ensure src is importable
ROOT = Path(__file__).parent.parent
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from berkeleysync.api import wire  # noqa: E402


def test_encode_is_single_newline_terminated_line():
    data = wire.encode(wire.time_request(100.5))
    assert data.endswith(b"\n")
    assert data.count(b"\n") == 1
    assert wire.decode_lines(data) == [{"type": "TIME_REQUEST", "t0": 100.5}]


def test_decoder_splits_concatenated_messages():
    data = wire.encode(wire.time_request(1.0)) + wire.encode(wire.adjust(-2.5))
    out = wire.decode_lines(data)
    assert [m["type"] for m in out] == ["TIME_REQUEST", "ADJUST"]
    assert out[1]["offset"] == -2.5


def test_decoder_buffers_incomplete_fragment():
    decoder = wire.JsonlDecoder()
    line = wire.encode(wire.time_reply(105.0))
    assert decoder.feed(line[:7]) == []
    assert decoder.pending == 7
    assert decoder.feed(line[7:]) == [{"type": "TIME_REPLY", "t1": 105.0}]
    assert decoder.pending == 0


def test_decoder_drops_malformed_lines_and_keeps_going():
    decoder = wire.JsonlDecoder()
    data = b'not json\n[1, 2]\n\xff\xfe\n\n{"id": "n1"}\n'
    assert decoder.feed(data) == [{"id": "n1"}]
    assert decoder.dropped == 3


def test_decoder_discards_oversized_line():
    decoder = wire.JsonlDecoder(max_line_bytes=16)
    assert decoder.feed(b"x" * 40) == []
    assert decoder.pending == 0
    # rest of the oversized line is skipped, the next line parses
    assert decoder.feed(b'yyyy\n{"id": "n2"}\n') == [{"id": "n2"}]


class TestValidators:
    """Field extraction for each message type"""

    def test_registration(self):
        assert wire.parse_registration({"id": "C1"}) == "C1"
        assert wire.parse_registration({"id": 7}) == "7"
        assert wire.parse_registration({"id": ""}) is None
        assert wire.parse_registration({"id": True}) is None
        assert wire.parse_registration({}) is None

    def test_time_reply(self):
        assert wire.parse_time_reply({"type": "TIME_REPLY", "t1": 105}) == 105.0
        assert wire.parse_time_reply({"type": "TIME_REPLY", "t1": "105"}) is None
        assert wire.parse_time_reply({"type": "TIME_REPLY"}) is None
        assert wire.parse_time_reply({"type": "ADJUST", "t1": 1.0}) is None

    def test_adjust_rejects_non_finite(self):
        assert wire.parse_adjust({"type": "ADJUST", "offset": -2.55}) == -2.55
        assert wire.parse_adjust({"type": "ADJUST", "offset": float("nan")}) is None
        assert wire.parse_adjust({"type": "ADJUST", "offset": False}) is None

    def test_time_reply_echoes_t0_only_when_given(self):
        assert wire.time_reply(1.0) == {"type": "TIME_REPLY", "t1": 1.0}
        assert wire.time_reply(1.0, 0.5) == {"type": "TIME_REPLY", "t1": 1.0, "t0": 0.5}
        assert wire.parse_time_request(wire.time_request(3.0)) == 3.0
