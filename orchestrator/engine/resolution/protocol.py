"""
Protocol definition for repair strategies.

Defines the interface that all conflict repair strategies must implement, and
the context and outcome types passed across it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

from orchestrator.engine.allocation import AllocationLedger, EquipmentAllocator, Placement, UnplacedStep
from orchestrator.engine.step_graph import StepGraph, StepKey
from orchestrator.models.schemas import StepGroup


@dataclass(frozen=True)
class Move:
    """A step whose start moved during a repair."""

    key: StepKey
    from_start: datetime
    to_start: datetime
    unit_id: Optional[str] = None

    @property
    def shifted_minutes(self) -> int:
        return int((self.from_start - self.to_start).total_seconds() // 60)


@dataclass
class RepairContext:
    """Everything a strategy may touch during one repair attempt."""

    allocator: EquipmentAllocator
    ledger: AllocationLedger
    graph: StepGraph
    origin: datetime
    default_max_wait_minutes: int

    def allowance_for(self, step: StepGroup) -> int:
        """Minutes a step's result may wait, falling back to the default slack."""
        if step.max_wait_minutes is not None:
            return step.max_wait_minutes
        return self.default_max_wait_minutes


@dataclass
class RepairOutcome:
    """Result of one repair attempt on one unplaced step."""

    resolved: bool
    placement: Optional[Placement] = None
    moves: List[Move] = field(default_factory=list)
    diagnosis: Optional[UnplacedStep] = None
    note: str = ""

    @classmethod
    def failed(cls, diagnosis: UnplacedStep, note: str) -> "RepairOutcome":
        return cls(resolved=False, diagnosis=diagnosis, note=note)


class RepairStrategy(Protocol):
    """
    Protocol for repair implementations.

    ShiftEarlierStrategy and NoRepairStrategy implement this protocol. The
    ConflictResolver calls repair() at most once per unplaced step, whatever
    the strategy does internally. A strategy that fails must leave the ledger
    as it found it.
    """

    name: str

    def repair(self, unplaced: UnplacedStep, context: RepairContext) -> RepairOutcome:
        """
        Try to place one unplaced step.

        Args:
            unplaced: Allocator diagnosis for the step.
            context: Allocator, ledger and graph for the run.

        Returns:
            RepairOutcome; on success the placement is already booked.
        """
        ...
