"""
Meal scheduler - runs one scheduling pass end to end.

State machine per run:
    building -> backward_solved -> allocated -> {resolved | conflicts_remain} -> reported

A malformed recipe aborts with MalformedRecipeError before anything is
solved. When no recipe survives the backward pass the run ends in
unmet_deadline, still with a report. Each transition is a single
deterministic pass; a run may be cancelled at any transition.
"""
import logging
from typing import Callable, List, Optional

from orchestrator.config import Settings, settings as default_settings
from orchestrator.engine.allocation import AllocationItem, AllocationLedger, EquipmentAllocator
from orchestrator.engine.backward_solver import BackwardSolution, BackwardTimeSolver
from orchestrator.engine.reporter import ScheduleReporter
from orchestrator.engine.resolution import ConflictResolver, RepairStrategy, create_repair_strategy
from orchestrator.engine.step_graph import StepGraph, StepGraphBuilder
from orchestrator.errors import MalformedRecipeError, ScheduleCancelledError, UnmetDeadlineError
from orchestrator.models.schemas import (
    Conflict, ConflictStatus, ConflictType, RunState, ScheduleReport, ScheduleRequest
)

logger = logging.getLogger(__name__)


class _Run:
    """Per-run state tracking and cancellation checks."""

    def __init__(self, should_cancel: Optional[Callable[[], bool]]):
        self.history: List[RunState] = [RunState.BUILDING]
        self._should_cancel = should_cancel

    @property
    def state(self) -> RunState:
        return self.history[-1]

    def advance(self, state: RunState) -> None:
        if self._should_cancel is not None and self._should_cancel():
            logger.info(f"Scheduling run cancelled in state '{self.state.value}'")
            raise ScheduleCancelledError(self.state.value)
        logger.debug(f"Run state {self.state.value} -> {state.value}")
        self.history.append(state)


class MealScheduler:
    """
    Schedule a multi-dish meal backward from its serving time.

    Wires the step graph builder, backward solver, equipment allocator,
    conflict resolver and reporter together for one request at a time.
    The scheduler holds no state between runs.
    """

    def __init__(
        self,
        strategy: Optional[RepairStrategy] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize scheduler.

        Args:
            strategy: Optional repair strategy. If not provided, creates one based on config.
            config: Optional settings; defaults to the global settings.
        """
        self.config = config or default_settings
        self._strategy = strategy or create_repair_strategy(self.config.repair_strategy)
        self._builder = StepGraphBuilder()

    def validate(self, request: ScheduleRequest) -> StepGraph:
        """
        Structural check only.

        Raises:
            MalformedRecipeError: If any recipe is structurally invalid.
        """
        return self._builder.build(request.recipes)

    def schedule(
        self,
        request: ScheduleRequest,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> ScheduleReport:
        """
        Run the full scheduling pipeline.

        Args:
            request: Recipes, equipment and meal time.
            should_cancel: Optional callable polled at each state transition
                (e.g. threading.Event().is_set).

        Returns:
            ScheduleReport, possibly with conflicts.

        Raises:
            MalformedRecipeError: If recipe input is structurally invalid.
            ScheduleCancelledError: If the run was cancelled.
        """
        # Frozen snapshot for the whole run
        request = request.model_copy(deep=True)
        run = _Run(should_cancel)
        logger.info(
            f"Scheduling {len(request.recipes)} recipe(s) for {request.meal_time.isoformat()}"
        )

        try:
            graph = self._builder.build(request.recipes)
        except MalformedRecipeError as e:
            run.history.append(RunState.MALFORMED_RECIPE)
            logger.warning(f"Rejected malformed input: {e.message}")
            raise

        solver = BackwardTimeSolver(
            meal_time=request.meal_time,
            kitchen_opens_at=request.kitchen_opens_at,
            pin_time_of_day=self.config.pin_time_of_day,
            planning_horizon_days=self.config.planning_horizon_days,
        )
        solution = solver.solve(graph)
        run.advance(RunState.BACKWARD_SOLVED)

        conflicts = [self._unmet_conflict(e, graph) for e in solution.unmet]
        reporter = ScheduleReporter(request.meal_time, request.equipment, request.meal_name)

        if solution.unmet and not solution.solved_recipe_ids:
            run.advance(RunState.UNMET_DEADLINE)
            logger.warning("No recipe can be ready by meal time; skipping allocation")
            return reporter.report(graph, None, [], conflicts, [], run.history)

        ledger, resolution = self._allocate_and_resolve(request, graph, solution, run)
        conflicts.extend(resolution.conflicts)

        run.advance(RunState.CONFLICTS_REMAIN if conflicts else RunState.RESOLVED)
        run.advance(RunState.REPORTED)

        report = reporter.report(
            graph,
            ledger,
            solution.solved_recipe_ids,
            conflicts,
            resolution.warnings,
            run.history,
        )
        logger.info(
            f"Schedule reported: {len(report.assignments)} assignment(s), "
            f"{len(report.conflicts)} conflict(s), {len(report.warnings)} warning(s)"
        )
        return report

    def _allocate_and_resolve(
        self,
        request: ScheduleRequest,
        graph: StepGraph,
        solution: BackwardSolution,
        run: _Run,
    ):
        solved = set(solution.solved_recipe_ids)
        items = [
            AllocationItem(node) for node in graph.nodes()
            if node.recipe.id in solved and node.step.equipment is not None
        ]

        allocator = EquipmentAllocator(request.equipment, self.config.allocator_max_workers)
        ledger = AllocationLedger(request.equipment, solution.windows)
        allocation = allocator.allocate(items, ledger)
        run.advance(RunState.ALLOCATED)

        resolver = ConflictResolver(
            allocator=allocator,
            graph=graph,
            origin=solution.origin,
            strategy=self._strategy,
            default_max_wait_minutes=self.config.default_max_wait_minutes,
        )
        return ledger, resolver.resolve(allocation.unplaced, ledger)

    def _unmet_conflict(self, error: UnmetDeadlineError, graph: StepGraph) -> Conflict:
        chain = graph.chain_for(error.recipe_id)
        return Conflict(
            type=ConflictType.UNMET_DEADLINE,
            status=ConflictStatus.FATAL,
            message=error.message,
            steps=[node.ref for node in chain.nodes],
        )
