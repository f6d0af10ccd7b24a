"""
Oven rack packing.

An oven is a grid of rows (physical racks), each rack_positions tall. Only one
temperature may be active at a time. A full-width dish owns its row; two
half-width dishes may share a row while their combined height fits.
"""

from dataclasses import dataclass
from datetime import datetime
from itertools import combinations
from typing import List, Optional, Tuple

from orchestrator.engine.allocation.models import Placement, UnplaceReason
from orchestrator.engine.step_graph import StepKey
from orchestrator.models.schemas import OvenConfig, OvenRequirement, OvenWidth


@dataclass(frozen=True)
class OvenFit:
    """Result of trying one start time on one oven."""

    row: Optional[int] = None
    reason: Optional[UnplaceReason] = None
    blockers: Tuple[StepKey, ...] = ()

    @property
    def fits(self) -> bool:
        return self.row is not None


class OvenPacker:
    """Row-level packing checks for a single oven."""

    def __init__(self, oven: OvenConfig):
        self.oven = oven

    @property
    def rows(self) -> List[int]:
        return list(range(1, self.oven.physical_racks + 1))

    def can_ever_fit(self, requirement: OvenRequirement) -> bool:
        return requirement.height_slots <= self.oven.rack_positions

    def fit(
        self,
        booked: List[Placement],
        requirement: OvenRequirement,
        start: datetime,
        end: datetime,
    ) -> OvenFit:
        """
        Check whether a dish fits on this oven over [start, end).

        Args:
            booked: Placements already on this oven.
            requirement: Temperature and rack geometry of the dish.
            start: Proposed start.
            end: Proposed end (equipment released).

        Returns:
            OvenFit with the chosen row, or the reason and blocking steps.
        """
        if not self.can_ever_fit(requirement):
            return OvenFit(reason=UnplaceReason.RACK_SPACE)

        overlapping = [p for p in booked if p.overlaps(start, end)]

        clashing = [p for p in overlapping if p.temperature != requirement.temperature]
        if clashing:
            return OvenFit(
                reason=UnplaceReason.TEMPERATURE_CLASH,
                blockers=tuple(p.key for p in clashing),
            )

        for row in self._row_preference(overlapping, requirement):
            in_row = [p for p in overlapping if p.row == row]
            if self._row_accepts(in_row, requirement, start, end):
                return OvenFit(row=row)

        return OvenFit(
            reason=UnplaceReason.RACK_SPACE,
            blockers=tuple(p.key for p in overlapping),
        )

    def _row_preference(self, overlapping: List[Placement], requirement: OvenRequirement) -> List[int]:
        """Half-width dishes try rows with a half-width partner first, keeping rows free."""
        if requirement.width == OvenWidth.FULL:
            return self.rows
        shared = [
            row for row in self.rows
            if any(p.row == row and p.width == OvenWidth.HALF for p in overlapping)
        ]
        return shared + [row for row in self.rows if row not in shared]

    def _row_accepts(
        self,
        in_row: List[Placement],
        requirement: OvenRequirement,
        start: datetime,
        end: datetime,
    ) -> bool:
        if not in_row:
            return True
        if requirement.width == OvenWidth.FULL:
            return False
        if any(p.width == OvenWidth.FULL for p in in_row):
            return False
        if any(p.height_slots + requirement.height_slots > self.oven.rack_positions for p in in_row):
            return False
        # At most one other half-width dish may be in the row at any instant
        for a, b in combinations(in_row, 2):
            if max(a.start, b.start, start) < min(a.end, b.end, end):
                return False
        return True
