"""Berkeley mean aggregation and per-node adjustments.

The reference time of a round is the unweighted mean of the coordinator's
own time and the estimate of every node that replied in time. Each
responsive node is told to move by ``reference - estimate``; nodes that
did not reply get nothing this round.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from berkeleysync.cluster.poll import TimeSample


@dataclass(frozen=True)
class Adjustment:
    node_id: str
    offset: float


@dataclass
class RoundResult:
    """Outcome of one round, as seen by the coordinator."""
    coordinator_time: float
    reference_time: float
    samples: List[TimeSample] = field(default_factory=list)
    timed_out: List[str] = field(default_factory=list)
    adjustments: List[Adjustment] = field(default_factory=list)
    delivered: List[str] = field(default_factory=list)

    @property
    def coordinator_offset(self) -> float:
        """How far the coordinator itself is from the reference (not applied)."""
        return self.reference_time - self.coordinator_time

    def adjustment_for(self, node_id: str) -> float | None:
        for adj in self.adjustments:
            if adj.node_id == node_id:
                return adj.offset
        return None


def reference_time(coordinator_time: float, estimates: Iterable[float]) -> float:
    """Arithmetic mean of the coordinator's time and all node estimates."""
    values = [coordinator_time, *estimates]
    return sum(values) / len(values)


def compute_adjustments(reference: float, samples: Iterable[TimeSample]) -> List[Adjustment]:
    return [Adjustment(node_id=s.node_id, offset=reference - s.estimate) for s in samples]


def aggregate(coordinator_time: float, samples: List[TimeSample],
              timed_out: List[str] | None = None) -> RoundResult:
    """Reduce one round's samples into a reference time and adjustments."""
    reference = reference_time(coordinator_time, (s.estimate for s in samples))
    return RoundResult(
        coordinator_time=coordinator_time,
        reference_time=reference,
        samples=list(samples),
        timed_out=list(timed_out or []),
        adjustments=compute_adjustments(reference, samples),
    )
