"""
Data models for equipment allocation.

Contains the items handed to the allocator, the placements it books, and the
diagnosis it produces when a step cannot be placed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple, Union

from orchestrator.engine.step_graph import ChainNode, StepKey
from orchestrator.models.schemas import (
    ConflictType, EquipmentKind, OvenRequirement, OvenWidth, StovetopRequirement
)


class UnplaceReason(str, Enum):
    """Why a step could not be placed."""

    TEMPERATURE_CLASH = "temperature_clash"
    RACK_SPACE = "rack_space"
    BURNER_COUNT = "burner_count"
    NO_EQUIPMENT = "no_equipment"

    @property
    def conflict_type(self) -> ConflictType:
        mapping = {
            UnplaceReason.TEMPERATURE_CLASH: ConflictType.EQUIPMENT_OVERBOOKED,
            UnplaceReason.NO_EQUIPMENT: ConflictType.EQUIPMENT_OVERBOOKED,
            UnplaceReason.RACK_SPACE: ConflictType.INSUFFICIENT_RACK_SPACE,
            UnplaceReason.BURNER_COUNT: ConflictType.BURNER_OVERBOOKED,
        }
        return mapping[self]


@dataclass(frozen=True)
class AllocationItem:
    """An equipment-consuming step group waiting for a slot."""

    node: ChainNode

    @property
    def key(self) -> StepKey:
        return self.node.key

    @property
    def requirement(self) -> Union[OvenRequirement, StovetopRequirement]:
        return self.node.step.equipment

    @property
    def kind(self) -> EquipmentKind:
        if isinstance(self.requirement, OvenRequirement):
            return EquipmentKind.OVEN
        return EquipmentKind.STOVETOP

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.node.step.duration_minutes)

    @property
    def max_wait_minutes(self) -> Optional[int]:
        return self.node.step.max_wait_minutes

    def sort_key(self) -> Tuple:
        """
        Greedy placement order.

        Least flexible first (ascending max wait, undeclared last), then
        longest first, then stable input order.
        """
        wait = self.max_wait_minutes
        return (
            wait if wait is not None else float("inf"),
            -self.node.step.duration_minutes,
            self.node.order_key,
        )


@dataclass(frozen=True)
class Placement:
    """A step booked on one equipment unit."""

    key: StepKey
    unit_id: str
    kind: EquipmentKind
    start: datetime
    end: datetime
    temperature: Optional[int] = None
    row: Optional[int] = None
    width: Optional[OvenWidth] = None
    height_slots: int = 0
    burners: int = 0

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True)
class UnplacedStep:
    """Diagnosis for a step with no feasible slot in its window."""

    item: AllocationItem
    reason: UnplaceReason
    window_start: datetime
    window_end: datetime  # latest start tried
    blocking_keys: Tuple[StepKey, ...] = ()
    equipment_ids: Tuple[str, ...] = ()
    detail: str = ""

    @property
    def key(self) -> StepKey:
        return self.item.key


@dataclass
class AllocationResult:
    """Outcome of one allocation pass."""

    placed: List[Placement] = field(default_factory=list)
    unplaced: List[UnplacedStep] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.unplaced
