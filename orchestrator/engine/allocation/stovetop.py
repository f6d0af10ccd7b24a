"""
Stovetop burner packing: 1-D capacity on burner count, no geometry.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from orchestrator.engine.allocation.models import Placement
from orchestrator.engine.step_graph import StepKey


def peak_usage(
    placements: List[Placement],
    start: datetime,
    end: datetime,
    amount: Callable[[Placement], int],
) -> int:
    """
    Highest concurrent usage of placements within [start, end).

    Args:
        placements: Placements to consider (non-overlapping ones contribute nothing).
        start: Window start.
        end: Window end.
        amount: Callable returning a placement's usage.
    """
    events = []
    for p in placements:
        if not p.overlaps(start, end):
            continue
        events.append((max(p.start, start), amount(p)))
        events.append((min(p.end, end), -amount(p)))
    # Releases sort before acquisitions at the same instant
    events.sort(key=lambda event: (event[0], event[1]))

    current = peak = 0
    for _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak


@dataclass(frozen=True)
class BurnerFit:
    fits: bool
    blockers: Tuple[StepKey, ...] = ()


class BurnerPacker:
    """Burner-count checks for the stovetop."""

    def __init__(self, burners: int):
        self.burners = burners

    def can_ever_fit(self, needed: int) -> bool:
        return needed <= self.burners

    def fit(self, booked: List[Placement], needed: int, start: datetime, end: datetime) -> BurnerFit:
        if not self.can_ever_fit(needed):
            return BurnerFit(fits=False)
        in_use = peak_usage(booked, start, end, lambda p: p.burners)
        if in_use + needed <= self.burners:
            return BurnerFit(fits=True)
        return BurnerFit(
            fits=False,
            blockers=tuple(p.key for p in booked if p.overlaps(start, end)),
        )

    def usage_points(self, booked: List[Placement]) -> List[Tuple[datetime, int]]:
        """Change points of burners in use, chronologically."""
        deltas = {}
        for p in booked:
            deltas[p.start] = deltas.get(p.start, 0) + p.burners
            deltas[p.end] = deltas.get(p.end, 0) - p.burners

        points: List[Tuple[datetime, int]] = []
        current = 0
        previous: Optional[int] = None
        for moment in sorted(deltas):
            current += deltas[moment]
            if current != previous:
                points.append((moment, current))
                previous = current
        return points
