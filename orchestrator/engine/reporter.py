"""
Schedule validator / reporter.

Aggregates the run's placements into assignments, a chronological timeline
and per-unit utilization. The "ready by meal time" and "no equipment
overbooked" checks are not recomputed here; they derive from the conflict
list on ScheduleReport.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from orchestrator.engine.allocation import AllocationLedger, BurnerPacker, Placement
from orchestrator.engine.allocation.stovetop import peak_usage
from orchestrator.engine.step_graph import ChainNode, StepGraph
from orchestrator.models.schemas import (
    STOVETOP_ID, BurnerUsagePoint, Conflict, EquipmentConfig, EquipmentKind,
    EquipmentUtilization, RunState, ScheduleReport, ScheduleWarning, TemperatureSegment,
    TimelineAction, TimelineEntry, TimeSlotAssignment
)

# Entries at the same moment: take dishes out before putting the next ones in
_ACTION_ORDER = {TimelineAction.FINISH: 0, TimelineAction.START: 1, TimelineAction.SERVE: 2}


def _busy_minutes(placements: List[Placement]) -> int:
    """Length of the union of placement intervals, in minutes."""
    total = timedelta()
    current_start: Optional[datetime] = None
    current_end: Optional[datetime] = None
    for p in sorted(placements, key=lambda p: p.start):
        if current_end is None or p.start > current_end:
            if current_end is not None:
                total += current_end - current_start
            current_start, current_end = p.start, p.end
        else:
            current_end = max(current_end, p.end)
    if current_end is not None:
        total += current_end - current_start
    return int(total.total_seconds() // 60)


class ScheduleReporter:
    """Build the ScheduleReport for one run."""

    def __init__(self, meal_time: datetime, equipment: EquipmentConfig, meal_name: Optional[str] = None):
        self.meal_time = meal_time
        self.equipment = equipment
        self.meal_name = meal_name

    def build_assignments(
        self,
        graph: StepGraph,
        ledger: AllocationLedger,
        recipe_ids: List[str],
    ) -> List[TimeSlotAssignment]:
        """
        Assignments for every placed equipment step and every counter step.

        Counter steps sit at their (possibly tightened) latest start. Equipment
        steps that stayed unplaced have no assignment; they appear as conflicts.
        """
        wanted = set(recipe_ids)
        assignments: List[TimeSlotAssignment] = []

        for chain in graph:
            if chain.recipe.id not in wanted:
                continue
            starts: Dict[int, Optional[datetime]] = {}
            for node in chain.nodes:
                placement = ledger.get(node.key)
                if placement is not None:
                    starts[node.position] = placement.start
                elif node.step.equipment is None:
                    starts[node.position] = ledger.windows[node.key].latest_start
                else:
                    starts[node.position] = None

            for node in chain.nodes:
                start = starts[node.position]
                if start is None:
                    continue
                successor = chain.successor(node)
                if successor is None:
                    target = self.meal_time - timedelta(minutes=node.step.hold_minutes)
                else:
                    target = starts[successor.position]
                    if target is None:
                        target = ledger.windows[successor.key].latest_start
                assignments.append(
                    self._assignment(
                        node, start, ledger.get(node.key), target, final=successor is None
                    )
                )

        order = {node.key: node.order_key for node in graph.nodes()}
        assignments.sort(key=lambda a: (a.start, order[(a.recipe_id, a.step_group_id)]))
        return assignments

    def _assignment(
        self,
        node: ChainNode,
        start: datetime,
        placement: Optional[Placement],
        next_start: datetime,
        final: bool = False,
    ) -> TimeSlotAssignment:
        step = node.step
        end = start + timedelta(minutes=step.duration_minutes)
        rest_until = end + timedelta(minutes=step.rest_minutes)
        wait = int((next_start - rest_until).total_seconds() // 60)
        hold_until = None
        if final and step.hold_minutes:
            hold_until = rest_until + timedelta(minutes=step.hold_minutes)

        return TimeSlotAssignment(
            recipe_id=node.recipe.id,
            recipe_name=node.recipe.name,
            step_group_id=step.id,
            step_name=step.name,
            equipment_kind=placement.kind if placement else EquipmentKind.COUNTER,
            equipment_id=placement.unit_id if placement else None,
            start=start,
            end=end,
            rest_until=rest_until,
            hold_until=hold_until,
            temperature=placement.temperature if placement else None,
            rack_row=placement.row if placement else None,
            burners=placement.burners if placement and placement.burners else None,
            wait_minutes=max(wait, 0),
            day_offset=(self.meal_time.date() - start.date()).days,
        )

    def build_timeline(self, assignments: List[TimeSlotAssignment]) -> List[TimelineEntry]:
        """Chronological start/finish entries plus the final serve entry."""
        entries: List[TimelineEntry] = []
        for index, a in enumerate(assignments):
            ref = a.ref
            label = ref.label()
            if a.equipment_kind == EquipmentKind.OVEN:
                start_text = f"Put {label} in {a.equipment_id} at {a.temperature}°F (rack {a.rack_row})"
                finish_text = f"Take {label} out of {a.equipment_id}"
            elif a.equipment_kind == EquipmentKind.STOVETOP:
                plural = "s" if a.burners != 1 else ""
                start_text = f"Start {label} on the stovetop ({a.burners} burner{plural})"
                finish_text = f"Take {label} off the heat"
            else:
                start_text = f"{label} ({int((a.end - a.start).total_seconds() // 60)} min)"
                finish_text = None

            entries.append(self._entry(a.start, TimelineAction.START, start_text, a, index))
            if finish_text is not None:
                if a.rest_until > a.end:
                    rest = int((a.rest_until - a.end).total_seconds() // 60)
                    finish_text += f"; rest {rest} min"
                entries.append(self._entry(a.end, TimelineAction.FINISH, finish_text, a, index))

        entries.sort(key=lambda e: (e[0], e[1]))
        timeline = [entry for _, _, entry in entries]
        timeline.append(
            TimelineEntry(
                time=self.meal_time,
                action=TimelineAction.SERVE,
                description=f"Serve {self.meal_name}" if self.meal_name else "Serve the meal",
            )
        )
        return timeline

    def _entry(self, time: datetime, action: TimelineAction, text: str, a: TimeSlotAssignment, index: int):
        entry = TimelineEntry(
            time=time,
            action=action,
            description=text,
            step=a.ref,
            equipment_id=a.equipment_id,
            day_offset=(self.meal_time.date() - time.date()).days,
        )
        return (time, (_ACTION_ORDER[action], index), entry)

    def build_utilization(self, ledger: AllocationLedger) -> List[EquipmentUtilization]:
        """Per-unit activity: span, busy time, temperatures or burner usage."""
        summaries: List[EquipmentUtilization] = []

        for oven in self.equipment.ovens:
            booked = sorted(ledger.booked_on(oven.id), key=lambda p: (p.start, p.end))
            summary = EquipmentUtilization(
                equipment_id=oven.id,
                equipment_kind=EquipmentKind.OVEN,
                capacity=oven.capacity_slots,
            )
            if booked:
                summary.assignment_count = len(booked)
                summary.active_from = booked[0].start
                summary.active_until = max(p.end for p in booked)
                summary.busy_minutes = _busy_minutes(booked)
                summary.peak_usage = max(
                    peak_usage(booked, p.start, p.end, lambda q: q.height_slots) for p in booked
                )
                summary.temperature_segments = self._temperature_segments(booked)
            summaries.append(summary)

        booked = sorted(ledger.booked_on(STOVETOP_ID), key=lambda p: (p.start, p.end))
        summary = EquipmentUtilization(
            equipment_id=STOVETOP_ID,
            equipment_kind=EquipmentKind.STOVETOP,
            capacity=self.equipment.stovetop_burners,
        )
        if booked:
            summary.assignment_count = len(booked)
            summary.active_from = booked[0].start
            summary.active_until = max(p.end for p in booked)
            summary.busy_minutes = _busy_minutes(booked)
            points = BurnerPacker(self.equipment.stovetop_burners).usage_points(booked)
            summary.burner_usage = [BurnerUsagePoint(time=t, burners_in_use=n) for t, n in points]
            summary.peak_usage = max(n for _, n in points)
        summaries.append(summary)

        return summaries

    def _temperature_segments(self, booked: List[Placement]) -> List[TemperatureSegment]:
        segments: List[TemperatureSegment] = []
        for p in booked:
            last = segments[-1] if segments else None
            if last is not None and last.temperature == p.temperature and p.start <= last.end:
                last.end = max(last.end, p.end)
            else:
                segments.append(TemperatureSegment(start=p.start, end=p.end, temperature=p.temperature))
        return segments

    def report(
        self,
        graph: StepGraph,
        ledger: Optional[AllocationLedger],
        recipe_ids: List[str],
        conflicts: List[Conflict],
        warnings: List[ScheduleWarning],
        state_history: List[RunState],
    ) -> ScheduleReport:
        """
        Assemble the final report.

        Args:
            graph: Step graph of the run.
            ledger: Run ledger, or None when nothing was allocated.
            recipe_ids: Recipes that reached allocation.
            conflicts: Every conflict of the run (fatal and unresolved).
            warnings: Repair notes.
            state_history: States visited, in order.

        Returns:
            ScheduleReport; always produced, even when partial.
        """
        if ledger is None:
            ledger = AllocationLedger(self.equipment, {})
        assignments = self.build_assignments(graph, ledger, recipe_ids)
        return ScheduleReport(
            meal_time=self.meal_time,
            meal_name=self.meal_name,
            final_state=state_history[-1],
            state_history=list(state_history),
            assignments=assignments,
            timeline=self.build_timeline(assignments),
            utilization=self.build_utilization(ledger),
            conflicts=list(conflicts),
            warnings=list(warnings),
        )
