"""
Equipment allocator.

Greedy placement of equipment-consuming steps into concrete slots on concrete
units. Ovens are packed in two dimensions (time x rack rows) per temperature
partition; the stovetop is packed in one (burner count). Each equipment class
is allocated independently, optionally on a worker pool, into a private
ledger that is merged afterwards.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union

from orchestrator.config import settings
from orchestrator.engine.allocation.ledger import AllocationLedger
from orchestrator.engine.allocation.models import (
    AllocationItem, AllocationResult, Placement, UnplaceReason, UnplacedStep
)
from orchestrator.engine.allocation.oven import OvenPacker
from orchestrator.engine.allocation.stovetop import BurnerPacker
from orchestrator.engine.step_graph import StepKey
from orchestrator.models.schemas import STOVETOP_ID, EquipmentConfig, EquipmentKind

logger = logging.getLogger(__name__)

PlaceOutcome = Union[Placement, UnplacedStep]


def candidate_starts(
    booked: List[Placement],
    duration: timedelta,
    lower: datetime,
    latest: datetime,
) -> List[datetime]:
    """
    Start times worth testing, latest first.

    Going backward from the latest start, a blocked slot can only become free
    when the step's end clears some booked start, so the latest feasible start
    is always either `latest` or `booked.start - duration` for some booking.
    """
    if lower > latest:
        return []
    starts = {latest}
    for placement in booked:
        start = placement.start - duration
        if lower <= start < latest:
            starts.add(start)
    return sorted(starts, reverse=True)


class EquipmentAllocator:
    """
    Place equipment steps at the latest feasible start in their windows.

    Placement order is least flexible first (ascending max wait), then longest
    first, then input order. Steps that do not fit are returned as
    UnplacedStep diagnoses rather than failing the run.
    """

    def __init__(self, equipment: EquipmentConfig, max_workers: Optional[int] = None):
        """
        Initialize allocator.

        Args:
            equipment: Fixed equipment configuration for the run.
            max_workers: Worker threads for per-class allocation. Defaults to
                settings.allocator_max_workers; 1 allocates inline.
        """
        self.equipment = equipment
        self.max_workers = max_workers or settings.allocator_max_workers
        self._oven_packers = [OvenPacker(oven) for oven in equipment.ovens]
        self._burner_packer = BurnerPacker(equipment.stovetop_burners)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def partition_by_temperature(self, items: List[AllocationItem]) -> List[List[AllocationItem]]:
        """
        Group oven items by temperature.

        Partitions are ordered by their least flexible member and each
        partition is internally sorted by the greedy order.
        """
        partitions: Dict[int, List[AllocationItem]] = {}
        for item in items:
            partitions.setdefault(item.requirement.temperature, []).append(item)
        ordered = [sorted(group, key=AllocationItem.sort_key) for group in partitions.values()]
        return sorted(ordered, key=lambda group: group[0].sort_key())

    def order(self, items: List[AllocationItem]) -> List[AllocationItem]:
        """Placement order for a mixed list of items."""
        ovens = [i for i in items if i.kind == EquipmentKind.OVEN]
        stovetop = [i for i in items if i.kind == EquipmentKind.STOVETOP]
        ordered = [item for group in self.partition_by_temperature(ovens) for item in group]
        return ordered + sorted(stovetop, key=AllocationItem.sort_key)

    # ------------------------------------------------------------------
    # First pass
    # ------------------------------------------------------------------

    def allocate(self, items: List[AllocationItem], ledger: AllocationLedger) -> AllocationResult:
        """
        Place every item just in time (at its window's latest start).

        Args:
            items: Equipment steps to place.
            ledger: Ledger holding the windows; placements are booked into it.

        Returns:
            AllocationResult with placements and unplaced diagnoses, the latter
            in greedy order.
        """
        by_class: List[Tuple[List[str], List[AllocationItem]]] = [
            (
                [oven.id for oven in self.equipment.ovens],
                [i for i in items if i.kind == EquipmentKind.OVEN],
            ),
            (
                [STOVETOP_ID],
                [i for i in items if i.kind == EquipmentKind.STOVETOP],
            ),
        ]

        jobs = [(ledger.partial(unit_ids), self.order(class_items)) for unit_ids, class_items in by_class]

        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(self._allocate_class, part, ordered) for part, ordered in jobs]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [self._allocate_class(part, ordered) for part, ordered in jobs]

        result = AllocationResult()
        for (part, _), unplaced in zip(jobs, outcomes):
            ledger.merge(part)
            result.unplaced.extend(unplaced)
        result.placed = [ledger.placements[i.key] for i in items if i.key in ledger.placements]
        result.unplaced.sort(key=lambda u: u.item.sort_key())

        logger.info(
            f"Allocated {len(result.placed)} of {len(items)} equipment step(s); "
            f"{len(result.unplaced)} unplaced"
        )
        return result

    def _allocate_class(self, ledger: AllocationLedger, ordered: List[AllocationItem]) -> List[UnplacedStep]:
        unplaced: List[UnplacedStep] = []
        for item in ordered:
            latest = ledger.windows[item.key].latest_start
            outcome = self.place(item, latest, latest, ledger)
            if isinstance(outcome, UnplacedStep):
                unplaced.append(outcome)
        return unplaced

    # ------------------------------------------------------------------
    # Single placement
    # ------------------------------------------------------------------

    def place(
        self,
        item: AllocationItem,
        lower: datetime,
        latest: datetime,
        ledger: AllocationLedger,
    ) -> PlaceOutcome:
        """
        Place one item at the latest feasible start in [lower, latest].

        Books the placement in the ledger on success.

        Args:
            item: Step to place.
            lower: Earliest start allowed.
            latest: Latest start allowed.
            ledger: Ledger to check against and book into.

        Returns:
            The booked Placement, or an UnplacedStep explaining the failure.
        """
        if item.kind == EquipmentKind.OVEN:
            outcome = self._place_oven(item, lower, latest, ledger)
        else:
            outcome = self._place_stovetop(item, lower, latest, ledger)

        if isinstance(outcome, Placement):
            ledger.book(outcome)
            logger.debug(
                f"Placed {item.key} on {outcome.unit_id} "
                f"{outcome.start:%a %H:%M}-{outcome.end:%H:%M}"
            )
        else:
            logger.debug(f"Could not place {item.key}: {outcome.detail}")
        return outcome

    def _place_oven(
        self,
        item: AllocationItem,
        lower: datetime,
        latest: datetime,
        ledger: AllocationLedger,
    ) -> PlaceOutcome:
        requirement = item.requirement
        packers = [
            (index, packer) for index, packer in enumerate(self._oven_packers)
            if requirement.oven_id in (None, packer.oven.id)
        ]
        if not packers:
            target = f"oven '{requirement.oven_id}'" if requirement.oven_id else "an oven"
            return UnplacedStep(
                item=item,
                reason=UnplaceReason.NO_EQUIPMENT,
                window_start=lower,
                window_end=latest,
                detail=f"needs {target} but none is configured",
            )

        best: Optional[Tuple[Tuple, Placement]] = None
        failures: List[Tuple[str, UnplaceReason, Tuple[StepKey, ...]]] = []

        for index, packer in packers:
            booked = ledger.booked_on(packer.oven.id)
            starts = candidate_starts(booked, item.duration, lower, latest)
            for attempt, start in enumerate(starts):
                end = start + item.duration
                fit = packer.fit(booked, requirement, start, end)
                if not fit.fits:
                    if attempt == 0:
                        failures.append((packer.oven.id, fit.reason, fit.blockers))
                    continue
                shares_run = any(
                    p.temperature == requirement.temperature and p.overlaps(start, end)
                    for p in booked
                )
                rank = (start, shares_run, -index)
                if best is None or rank > best[0]:
                    best = (
                        rank,
                        Placement(
                            key=item.key,
                            unit_id=packer.oven.id,
                            kind=EquipmentKind.OVEN,
                            start=start,
                            end=end,
                            temperature=requirement.temperature,
                            row=fit.row,
                            width=requirement.width,
                            height_slots=requirement.height_slots,
                        ),
                    )
                break

        if best is not None:
            return best[1]

        reasons = [reason for _, reason, _ in failures]
        reason = (
            UnplaceReason.RACK_SPACE if UnplaceReason.RACK_SPACE in reasons
            else UnplaceReason.TEMPERATURE_CLASH
        )
        blockers = tuple(dict.fromkeys(key for _, _, keys in failures for key in keys))
        unit_ids = tuple(unit_id for unit_id, _, _ in failures) or tuple(
            packer.oven.id for _, packer in packers
        )
        if reason == UnplaceReason.RACK_SPACE and not blockers:
            detail = (
                f"is {requirement.height_slots} rack positions tall; "
                f"no oven row is tall enough"
            )
        elif reason == UnplaceReason.RACK_SPACE:
            detail = f"no free rack row at {requirement.temperature}°F"
        else:
            detail = f"oven is held at another temperature than {requirement.temperature}°F"
        return UnplacedStep(
            item=item,
            reason=reason,
            window_start=lower,
            window_end=latest,
            blocking_keys=blockers,
            equipment_ids=unit_ids,
            detail=detail,
        )

    def _place_stovetop(
        self,
        item: AllocationItem,
        lower: datetime,
        latest: datetime,
        ledger: AllocationLedger,
    ) -> PlaceOutcome:
        needed = item.requirement.burners
        booked = ledger.booked_on(STOVETOP_ID)

        if not self._burner_packer.can_ever_fit(needed):
            return UnplacedStep(
                item=item,
                reason=UnplaceReason.BURNER_COUNT,
                window_start=lower,
                window_end=latest,
                equipment_ids=(STOVETOP_ID,),
                detail=f"needs {needed} burner(s) but the stovetop has {self.equipment.stovetop_burners}",
            )

        blockers: Tuple[StepKey, ...] = ()
        for attempt, start in enumerate(candidate_starts(booked, item.duration, lower, latest)):
            end = start + item.duration
            fit = self._burner_packer.fit(booked, needed, start, end)
            if fit.fits:
                return Placement(
                    key=item.key,
                    unit_id=STOVETOP_ID,
                    kind=EquipmentKind.STOVETOP,
                    start=start,
                    end=end,
                    burners=needed,
                )
            if attempt == 0:
                blockers = fit.blockers

        return UnplacedStep(
            item=item,
            reason=UnplaceReason.BURNER_COUNT,
            window_start=lower,
            window_end=latest,
            blocking_keys=blockers,
            equipment_ids=(STOVETOP_ID,),
            detail=f"all {self.equipment.stovetop_burners} burner(s) are in use",
        )
