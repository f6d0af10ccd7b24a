"""
Factory for creating repair strategies based on configuration.
"""

from typing import Optional

from orchestrator.engine.resolution.protocol import RepairStrategy


def create_repair_strategy(name: Optional[str] = None) -> RepairStrategy:
    """
    Create the repair strategy named in settings (or explicitly).

    Args:
        name: Strategy name; defaults to settings.repair_strategy.

    Returns:
        RepairStrategy implementation (ShiftEarlierStrategy or NoRepairStrategy)

    Raises:
        ValueError: If the name is not a known strategy.
    """
    from orchestrator.config import settings

    name = (name or settings.repair_strategy).strip().lower()

    if name == "shift_earlier":
        from orchestrator.engine.resolution.shift_earlier import ShiftEarlierStrategy

        return ShiftEarlierStrategy()

    if name == "none":
        from orchestrator.engine.resolution.no_repair import NoRepairStrategy

        return NoRepairStrategy()

    raise ValueError(f"Unknown repair strategy '{name}'")
