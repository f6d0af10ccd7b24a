"""
Shift-earlier repair strategy.

Moves an unplaced step earlier within its window, by at most the time its
result may wait before the next step (max_wait_minutes). Earlier steps of the
same recipe are re-timed so the recipe order still holds. The attempt is all
or nothing: any failure rolls the ledger back.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from orchestrator.engine.allocation import AllocationItem, UnplacedStep
from orchestrator.engine.resolution.protocol import Move, RepairContext, RepairOutcome
from orchestrator.engine.step_graph import ChainNode

logger = logging.getLogger(__name__)


class ShiftEarlierStrategy:
    """Single bounded local search: one shifted re-allocation per step."""

    name = "shift_earlier"

    def repair(self, unplaced: UnplacedStep, context: RepairContext) -> RepairOutcome:
        item = unplaced.item
        step = item.node.step
        ledger = context.ledger
        window = ledger.windows[item.key]
        allowance = context.allowance_for(step)

        if window.pinned:
            return RepairOutcome.failed(unplaced, "step is pinned to a fixed time")
        if allowance == 0:
            return RepairOutcome.failed(unplaced, "result must be used immediately (max wait 0 min)")

        lower = window.lower_bound(allowance, context.origin)
        if lower >= window.latest_start:
            return RepairOutcome.failed(unplaced, "no earlier start is allowed")

        snapshot = ledger.snapshot()
        outcome = context.allocator.place(item, lower, window.latest_start, ledger)
        if isinstance(outcome, UnplacedStep):
            return RepairOutcome.failed(
                outcome,
                f"no slot within {allowance} min before {window.latest_start:%H:%M}",
            )

        moves = [Move(item.key, window.latest_start, outcome.start, outcome.unit_id)]
        failure = self._retime_predecessors(item.node, outcome.start, context, moves)
        if failure is not None:
            ledger.restore(snapshot)
            logger.debug(f"Rolled back shift of {item.key}: {failure}")
            return RepairOutcome.failed(unplaced, failure)

        return RepairOutcome(resolved=True, placement=outcome, moves=moves)

    def _retime_predecessors(
        self,
        node: ChainNode,
        start: datetime,
        context: RepairContext,
        moves: List[Move],
    ) -> Optional[str]:
        """
        Pull earlier steps of the recipe back so each finishes by its successor's start.

        Returns:
            None on success, otherwise why the recipe could not follow the shift.
        """
        ledger = context.ledger
        chain = context.graph.chain_for(node.recipe.id)
        successor_start = start

        for predecessor in chain.predecessors(node):
            key = predecessor.key
            step = predecessor.step
            window = ledger.windows[key]
            required = successor_start - timedelta(minutes=step.blocking_minutes)

            if required >= window.latest_start:
                return None
            if window.earliest_start is not None and required < window.earliest_start:
                return f"'{step.name}' cannot start before {window.earliest_start:%a %H:%M}"
            if required < context.origin:
                return f"'{step.name}' would start before the kitchen opens"

            ledger.windows[key] = window.with_latest(required)
            placement = ledger.get(key)

            if placement is None:
                if step.equipment is None:
                    moves.append(Move(key, window.latest_start, required))
                # Unplaced equipment steps keep the tightened window for their own pass
                successor_start = required
                continue

            if placement.start <= required:
                return None

            ledger.release(key)
            allowance = context.allowance_for(step)
            lower = ledger.windows[key].lower_bound(allowance, context.origin)
            outcome = context.allocator.place(AllocationItem(predecessor), lower, required, ledger)
            if isinstance(outcome, UnplacedStep):
                return f"'{step.name}' could not move earlier: {outcome.detail}"
            moves.append(Move(key, placement.start, outcome.start, outcome.unit_id))
            successor_start = outcome.start

        return None
