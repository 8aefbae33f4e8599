"""Tests for sending ADJUST to the nodes of a round"""

import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))
sys.path.insert(0, str(Path(__file__).parent))

import pytest  # noqa: E402

from berkeleysync.cluster.aggregate import Adjustment  # noqa: E402
from berkeleysync.cluster.broadcast import broadcast_adjustments  # noqa: E402
from berkeleysync.cluster.registry import SessionRegistry  # noqa: E402
from fakes import FakeWriter  # noqa: E402


class BrokenWriter(FakeWriter):
    def write(self, data: bytes) -> None:
        raise ConnectionResetError("peer reset")


@pytest.mark.asyncio
async def test_sends_adjust_to_each_polled_session():
    registry = SessionRegistry()
    wa, wb = FakeWriter(), FakeWriter()
    registry.register("a", wa)
    registry.register("b", wb)
    sessions = {s.id: s for s in registry.snapshot()}

    delivered = await broadcast_adjustments(
        registry, sessions, [Adjustment("a", -1.5), Adjustment("b", 0.25)]
    )

    assert sorted(delivered) == ["a", "b"]
    assert wa.messages == [{"type": "ADJUST", "offset": -1.5}]
    assert wb.messages == [{"type": "ADJUST", "offset": 0.25}]


@pytest.mark.asyncio
async def test_nodes_without_adjustment_receive_nothing():
    registry = SessionRegistry()
    wa, wb = FakeWriter(), FakeWriter()
    registry.register("a", wa)
    registry.register("b", wb)
    sessions = {s.id: s for s in registry.snapshot()}

    await broadcast_adjustments(registry, sessions, [Adjustment("a", 1.0)])
    assert wb.messages == []


@pytest.mark.asyncio
async def test_replaced_or_removed_sessions_are_skipped():
    registry = SessionRegistry()
    old_writer, new_writer, gone_writer = FakeWriter(), FakeWriter(), FakeWriter()
    registry.register("dup", old_writer)
    registry.register("gone", gone_writer)
    sessions = {s.id: s for s in registry.snapshot()}

    registry.register("dup", new_writer)
    registry.remove("gone")

    delivered = await broadcast_adjustments(
        registry, sessions, [Adjustment("dup", 1.0), Adjustment("gone", 2.0)]
    )
    assert delivered == []
    assert old_writer.messages == []
    assert new_writer.messages == []
    assert gone_writer.messages == []


@pytest.mark.asyncio
async def test_send_failure_does_not_block_others():
    registry = SessionRegistry()
    good = FakeWriter()
    registry.register("bad", BrokenWriter())
    registry.register("good", good)
    sessions = {s.id: s for s in registry.snapshot()}

    delivered = await broadcast_adjustments(
        registry, sessions, [Adjustment("bad", 1.0), Adjustment("good", 2.0)]
    )
    assert delivered == ["good"]
    assert good.messages == [{"type": "ADJUST", "offset": 2.0}]
