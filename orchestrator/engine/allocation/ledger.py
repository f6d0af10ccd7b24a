"""
Allocation ledger.

Holds the mutable state of one scheduling run: the booked placements per
equipment unit and the current candidate window of every step. The conflict
resolver snapshots and restores it around each repair attempt.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from orchestrator.engine.backward_solver import CandidateWindow
from orchestrator.engine.allocation.models import Placement
from orchestrator.engine.step_graph import StepKey
from orchestrator.models.schemas import STOVETOP_ID, EquipmentConfig


@dataclass(frozen=True)
class LedgerSnapshot:
    placements: Dict[StepKey, Placement]
    books: Dict[str, List[Placement]]
    windows: Dict[StepKey, CandidateWindow]


class AllocationLedger:
    """Bookings and windows for one run. Never shared across runs."""

    def __init__(self, equipment: EquipmentConfig, windows: Dict[StepKey, CandidateWindow]):
        self.equipment = equipment
        self.windows: Dict[StepKey, CandidateWindow] = dict(windows)
        self.placements: Dict[StepKey, Placement] = {}
        self._books: Dict[str, List[Placement]] = {oven.id: [] for oven in equipment.ovens}
        self._books[STOVETOP_ID] = []

    @property
    def unit_ids(self) -> List[str]:
        return list(self._books)

    def booked_on(self, unit_id: str) -> List[Placement]:
        """Placements on a unit, in booking order."""
        return self._books[unit_id]

    def get(self, key: StepKey) -> Optional[Placement]:
        return self.placements.get(key)

    def book(self, placement: Placement) -> None:
        """Book a placement. A step can hold at most one placement."""
        if placement.key in self.placements:
            raise ValueError(f"Step {placement.key} is already placed")
        self.placements[placement.key] = placement
        self._books[placement.unit_id].append(placement)

    def release(self, key: StepKey) -> Placement:
        """Remove and return the placement of a step."""
        placement = self.placements.pop(key)
        self._books[placement.unit_id].remove(placement)
        return placement

    def snapshot(self) -> LedgerSnapshot:
        # Placements and windows are immutable, so copying the containers is enough
        return LedgerSnapshot(
            placements=dict(self.placements),
            books={unit_id: list(book) for unit_id, book in self._books.items()},
            windows=dict(self.windows),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self.placements = dict(snapshot.placements)
        self._books = {unit_id: list(book) for unit_id, book in snapshot.books.items()}
        self.windows = dict(snapshot.windows)

    def partial(self, unit_ids: Iterable[str]) -> "AllocationLedger":
        """
        Private ledger restricted to some units, for independent allocation.

        Existing bookings on those units are carried over; the windows are
        shared read-only.
        """
        ledger = AllocationLedger(self.equipment, self.windows)
        wanted = set(unit_ids)
        ledger._books = {unit_id: [] for unit_id in self._books if unit_id in wanted}
        for unit_id in ledger._books:
            for placement in self._books[unit_id]:
                ledger.book(placement)
        return ledger

    def merge(self, other: "AllocationLedger") -> None:
        """Book every placement from a partial ledger not already booked here."""
        for key, placement in other.placements.items():
            if key not in self.placements:
                self.book(placement)
