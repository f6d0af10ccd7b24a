"""
Diagnosis-only strategy: reports every unplaced step without moving anything.
"""

from orchestrator.engine.allocation import UnplacedStep
from orchestrator.engine.resolution.protocol import RepairContext, RepairOutcome


class NoRepairStrategy:
    """Leave the allocator's first pass untouched."""

    name = "none"

    def repair(self, unplaced: UnplacedStep, context: RepairContext) -> RepairOutcome:
        return RepairOutcome.failed(unplaced, "automatic repair is disabled")
