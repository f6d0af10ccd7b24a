"""
Conflict resolver.

Consumes the allocator's unplaced steps and gives each exactly one repair
attempt through the configured strategy. Whatever is still unplaced afterwards
becomes an unresolved Conflict naming the steps and equipment involved.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from orchestrator.config import settings
from orchestrator.engine.allocation import AllocationLedger, EquipmentAllocator, UnplaceReason, UnplacedStep
from orchestrator.engine.resolution.factory import create_repair_strategy
from orchestrator.engine.resolution.protocol import Move, RepairContext, RepairOutcome, RepairStrategy
from orchestrator.engine.step_graph import StepGraph, StepKey
from orchestrator.models.schemas import Conflict, ConflictStatus, ScheduleWarning

logger = logging.getLogger(__name__)


@dataclass
class ResolutionResult:
    """Conflicts left after repair, and notes about what was moved."""

    conflicts: List[Conflict] = field(default_factory=list)
    warnings: List[ScheduleWarning] = field(default_factory=list)
    resolved_keys: List[StepKey] = field(default_factory=list)


class ConflictResolver:
    """Bounded repair of unplaced steps: at most one attempt each."""

    def __init__(
        self,
        allocator: EquipmentAllocator,
        graph: StepGraph,
        origin: datetime,
        strategy: Optional[RepairStrategy] = None,
        default_max_wait_minutes: Optional[int] = None,
    ):
        """
        Initialize resolver.

        Args:
            allocator: Allocator to re-invoke with adjusted windows.
            graph: Step graph of the run (read only).
            origin: Feasible origin; no step may move before it.
            strategy: Repair strategy. If not provided, creates one based on config.
            default_max_wait_minutes: Slack for steps without a declared max wait.
        """
        self.allocator = allocator
        self.graph = graph
        self.origin = origin
        self.strategy = strategy or create_repair_strategy()
        if default_max_wait_minutes is None:
            default_max_wait_minutes = settings.default_max_wait_minutes
        self.default_max_wait_minutes = default_max_wait_minutes

    def resolve(self, unplaced: List[UnplacedStep], ledger: AllocationLedger) -> ResolutionResult:
        """
        Attempt one repair per unplaced step, least flexible first.

        Args:
            unplaced: Diagnoses from the allocator.
            ledger: Run ledger; successful repairs are booked into it.

        Returns:
            ResolutionResult with unresolved conflicts and repair warnings.
        """
        context = RepairContext(
            allocator=self.allocator,
            ledger=ledger,
            graph=self.graph,
            origin=self.origin,
            default_max_wait_minutes=self.default_max_wait_minutes,
        )
        result = ResolutionResult()
        attempted: Set[StepKey] = set()

        for entry in sorted(unplaced, key=lambda u: u.item.sort_key()):
            if entry.key in attempted:
                continue
            attempted.add(entry.key)

            outcome = self.strategy.repair(entry, context)
            if outcome.resolved:
                result.resolved_keys.append(entry.key)
                result.warnings.extend(self._warnings_for(outcome))
                logger.info(f"Resolved {entry.key} with strategy '{self.strategy.name}'")
            else:
                conflict = self.to_conflict(outcome.diagnosis or entry, outcome.note)
                result.conflicts.append(conflict)
                logger.warning(f"Unresolved conflict: {conflict.message}")

        return result

    def to_conflict(self, diagnosis: UnplacedStep, note: str = "") -> Conflict:
        """Turn an allocator diagnosis into a user-facing Conflict."""
        node = diagnosis.item.node
        refs = [node.ref] + [
            self.graph.node(key).ref for key in diagnosis.blocking_keys if key != node.key
        ]

        message = f"{node.ref.label()} {self._describe(diagnosis)}"
        if diagnosis.blocking_keys:
            blockers = ", ".join(self.graph.node(key).ref.label() for key in diagnosis.blocking_keys)
            message += f" (competing with {blockers})"
        if note:
            message += f"; {note}"

        return Conflict(
            type=diagnosis.reason.conflict_type,
            status=ConflictStatus.UNRESOLVED,
            message=message,
            steps=refs,
            equipment_ids=list(diagnosis.equipment_ids),
        )

    def _describe(self, diagnosis: UnplacedStep) -> str:
        at = f"{diagnosis.window_end:%a %H:%M}"
        if diagnosis.reason == UnplaceReason.TEMPERATURE_CLASH:
            return f"cannot start at {at}: {diagnosis.detail}"
        if diagnosis.reason == UnplaceReason.RACK_SPACE:
            return f"cannot fit in the oven at {at}: {diagnosis.detail}"
        if diagnosis.reason == UnplaceReason.BURNER_COUNT:
            return f"cannot get a burner at {at}: {diagnosis.detail}"
        return f"cannot be placed: {diagnosis.detail}"

    def _warnings_for(self, outcome: RepairOutcome) -> List[ScheduleWarning]:
        warnings = []
        for move in outcome.moves:
            warnings.append(self._move_warning(move))
        return warnings

    def _move_warning(self, move: Move) -> ScheduleWarning:
        ref = self.graph.node(move.key).ref
        where = f" on {move.unit_id}" if move.unit_id else ""
        return ScheduleWarning(
            message=(
                f"{ref.label()} moved {move.shifted_minutes} min earlier{where} "
                f"({move.from_start:%H:%M} -> {move.to_start:%H:%M}) to free contended equipment"
            ),
            step=ref,
            shifted_minutes=move.shifted_minutes,
        )
