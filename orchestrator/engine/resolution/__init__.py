"""
Conflict resolution for the scheduling core.

Unplaced steps get one bounded repair attempt each. Two strategies are
available:
1. ShiftEarlierStrategy - move the step earlier within its max wait (default)
2. NoRepairStrategy - report only, never move anything

create_repair_strategy selects one based on settings.repair_strategy.
"""

from orchestrator.engine.resolution.protocol import Move, RepairContext, RepairOutcome, RepairStrategy
from orchestrator.engine.resolution.factory import create_repair_strategy
from orchestrator.engine.resolution.shift_earlier import ShiftEarlierStrategy
from orchestrator.engine.resolution.no_repair import NoRepairStrategy
from orchestrator.engine.resolution.resolver import ConflictResolver, ResolutionResult

__all__ = [
    # Protocol
    "RepairStrategy",
    "RepairContext",
    "RepairOutcome",
    "Move",
    # Strategies
    "ShiftEarlierStrategy",
    "NoRepairStrategy",
    # Factory
    "create_repair_strategy",
    # Resolver
    "ConflictResolver",
    "ResolutionResult",
]
