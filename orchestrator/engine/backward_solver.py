"""
Backward time solver.

Computes, per recipe and ignoring equipment contention, the latest start for
every step group by walking the chain backward from meal time. Steps pinned to
an absolute moment (nights or minutes before serving) anchor the walk, and
give the steps after them a forward earliest start.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional

from orchestrator.config import settings
from orchestrator.engine.step_graph import RecipeChain, StepGraph, StepKey
from orchestrator.errors import UnmetDeadlineError
from orchestrator.models.schemas import StepGroup

logger = logging.getLogger(__name__)


def minutes(value: int) -> timedelta:
    return timedelta(minutes=value)


def _night_only(step: StepGroup) -> bool:
    return step.nights_before_serving is not None and step.minutes_before_serving is None


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes from earlier to later (negative if reversed)."""
    return int((later - earlier).total_seconds() // 60)


@dataclass(frozen=True)
class CandidateWindow:
    """
    Start-time window for one step group.

    latest_start is always known. earliest_start is None (open) unless the
    step, or a step before it, is pinned to an absolute moment.
    """

    latest_start: datetime
    earliest_start: Optional[datetime] = None
    pinned: bool = False

    def with_latest(self, latest_start: datetime) -> "CandidateWindow":
        return replace(self, latest_start=latest_start)

    def lower_bound(self, allowance_minutes: int, origin: datetime) -> datetime:
        """
        Earliest start reachable by shifting up to allowance_minutes earlier.

        Never below the window's own earliest start or the feasible origin.
        """
        lower = self.latest_start - minutes(allowance_minutes)
        if self.earliest_start is not None:
            lower = max(lower, self.earliest_start)
        return max(lower, origin)


@dataclass
class BackwardSolution:
    """Windows for every recipe that fits, plus the recipes that cannot."""

    origin: datetime
    windows: Dict[StepKey, CandidateWindow] = field(default_factory=dict)
    ideal_finish: Dict[str, datetime] = field(default_factory=dict)
    solved_recipe_ids: List[str] = field(default_factory=list)
    unmet: List[UnmetDeadlineError] = field(default_factory=list)


class BackwardTimeSolver:
    """Latest-feasible windows working backward from meal time."""

    def __init__(
        self,
        meal_time: datetime,
        kitchen_opens_at: Optional[datetime] = None,
        pin_time_of_day: Optional[time] = None,
        planning_horizon_days: Optional[int] = None,
    ):
        """
        Initialize the solver.

        Args:
            meal_time: When the meal is served; all computation roots here.
            kitchen_opens_at: Feasible origin. Defaults to midnight
                planning_horizon_days before the meal day.
            pin_time_of_day: Start time for nights-before-serving steps.
            planning_horizon_days: Horizon used when kitchen_opens_at is unset.
        """
        self.meal_time = meal_time
        self.pin_time_of_day = pin_time_of_day or settings.pin_time_of_day
        horizon = planning_horizon_days or settings.planning_horizon_days
        if kitchen_opens_at is not None:
            self.origin = kitchen_opens_at
        else:
            self.origin = datetime.combine(
                meal_time.date() - timedelta(days=horizon),
                time.min,
                tzinfo=meal_time.tzinfo,
            )

    def pin_start(self, step: StepGroup) -> Optional[datetime]:
        """
        Absolute start of a pinned step, or None if the step is not pinned.

        minutes_before_serving counts back from meal time; nights_before_serving
        moves to an earlier calendar day, at the configured time of day unless
        minutes_before_serving is also given.
        """
        if step.minutes_before_serving is not None:
            start = self.meal_time - minutes(step.minutes_before_serving)
            if step.nights_before_serving:
                start -= timedelta(days=step.nights_before_serving)
            return start
        if step.nights_before_serving is not None:
            day = self.meal_time.date() - timedelta(days=step.nights_before_serving)
            return datetime.combine(day, self.pin_time_of_day, tzinfo=self.meal_time.tzinfo)
        return None

    def chain_pins(self, chain: RecipeChain) -> List[Optional[datetime]]:
        """
        Pinned starts for every step of a chain, None where unpinned.

        Consecutive steps pinned to the same night only (no
        minutes_before_serving) run back to back on that day: the first starts
        at the pin time of day and each following one when the previous
        step's rest ends.
        """
        pins: List[Optional[datetime]] = []
        previous: Optional[StepGroup] = None
        for node in chain.nodes:
            step = node.step
            pin = self.pin_start(step)
            if (
                previous is not None
                and _night_only(previous)
                and _night_only(step)
                and previous.nights_before_serving == step.nights_before_serving
            ):
                pin = pins[-1] + minutes(previous.blocking_minutes)
            pins.append(pin)
            previous = step
        return pins

    def ideal_finish(self, chain: RecipeChain) -> datetime:
        """Meal time minus the final step's hold time."""
        return self.meal_time - minutes(chain.final.step.hold_minutes)

    def solve_recipe(self, chain: RecipeChain) -> Dict[StepKey, CandidateWindow]:
        """
        Compute candidate windows for one recipe chain.

        Args:
            chain: The recipe's step chain.

        Returns:
            Mapping of step key to CandidateWindow.

        Raises:
            UnmetDeadlineError: If the chain cannot fit between the feasible
                origin and meal time, or a pin contradicts the chain order.
        """
        recipe = chain.recipe
        step_ids = [node.step.id for node in chain.nodes]
        pins = self.chain_pins(chain)

        # Backward pass: latest starts
        latest: List[datetime] = [self.meal_time] * len(chain.nodes)
        latest_finish = self.ideal_finish(chain)
        for node in reversed(chain.nodes):
            step = node.step
            start = latest_finish - minutes(step.blocking_minutes)
            pin = pins[node.position]
            if pin is not None:
                if pin > start:
                    raise UnmetDeadlineError(
                        recipe_id=recipe.id,
                        recipe_name=recipe.name,
                        reason=(
                            f"'{step.name}' is pinned to start {pin:%a %H:%M} but must "
                            f"start by {start:%a %H:%M} to keep the recipe order"
                        ),
                        step_group_ids=step_ids,
                        shortfall_minutes=minutes_between(start, pin),
                    )
                start = pin
            latest[node.position] = start
            latest_finish = start

        if latest[0] < self.origin:
            raise UnmetDeadlineError(
                recipe_id=recipe.id,
                recipe_name=recipe.name,
                reason=(
                    f"'{chain.nodes[0].step.name}' would have to start {latest[0]:%a %H:%M}, "
                    f"before the kitchen opens at {self.origin:%a %H:%M}"
                ),
                step_group_ids=step_ids,
                shortfall_minutes=minutes_between(latest[0], self.origin),
            )

        # Forward pass: earliest starts implied by pins
        windows: Dict[StepKey, CandidateWindow] = {}
        earliest_finish: Optional[datetime] = None
        for node in chain.nodes:
            step = node.step
            pin = pins[node.position]
            bounds = [t for t in (pin, earliest_finish) if t is not None]
            earliest = max(bounds) if bounds else None
            if earliest is not None and earliest > latest[node.position]:
                raise UnmetDeadlineError(
                    recipe_id=recipe.id,
                    recipe_name=recipe.name,
                    reason=(
                        f"'{step.name}' cannot start before {earliest:%a %H:%M} "
                        f"but must start by {latest[node.position]:%a %H:%M}"
                    ),
                    step_group_ids=step_ids,
                    shortfall_minutes=minutes_between(latest[node.position], earliest),
                )
            windows[node.key] = CandidateWindow(
                latest_start=latest[node.position],
                earliest_start=earliest,
                pinned=pin is not None,
            )
            earliest_finish = (
                earliest + minutes(step.blocking_minutes) if earliest is not None else None
            )

        return windows

    def solve(self, graph: StepGraph) -> BackwardSolution:
        """
        Solve every recipe chain independently.

        Recipes that cannot meet the deadline are collected in
        BackwardSolution.unmet instead of failing the run.
        """
        solution = BackwardSolution(origin=self.origin)
        for chain in graph:
            try:
                windows = self.solve_recipe(chain)
            except UnmetDeadlineError as e:
                logger.warning(f"Unmet deadline for recipe '{chain.recipe.name}': {e.reason}")
                solution.unmet.append(e)
                continue
            solution.windows.update(windows)
            solution.ideal_finish[chain.recipe.id] = self.ideal_finish(chain)
            solution.solved_recipe_ids.append(chain.recipe.id)

        logger.debug(
            f"Backward pass solved {len(solution.solved_recipe_ids)} recipe(s), "
            f"{len(solution.unmet)} unmet"
        )
        return solution
