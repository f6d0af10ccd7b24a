"""
Equipment allocation for the scheduling core.

Places equipment-consuming step groups into concrete time slots on concrete
units:
1. OvenPacker - rack-row packing with single-temperature ovens
2. BurnerPacker - burner-count packing for the stovetop

EquipmentAllocator drives both and records every booking in an
AllocationLedger.
"""

from orchestrator.engine.allocation.models import (
    AllocationItem, AllocationResult, Placement, UnplaceReason, UnplacedStep
)
from orchestrator.engine.allocation.ledger import AllocationLedger
from orchestrator.engine.allocation.oven import OvenPacker
from orchestrator.engine.allocation.stovetop import BurnerPacker
from orchestrator.engine.allocation.allocator import EquipmentAllocator, candidate_starts

__all__ = [
    # Models
    "AllocationItem",
    "AllocationResult",
    "Placement",
    "UnplaceReason",
    "UnplacedStep",
    # State
    "AllocationLedger",
    # Packers
    "OvenPacker",
    "BurnerPacker",
    # Allocator
    "EquipmentAllocator",
    "candidate_starts",
]
