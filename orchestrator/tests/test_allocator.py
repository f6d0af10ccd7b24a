"""
Tests for equipment allocation.

Tests oven rack packing, temperature exclusivity, burner capacity, placement
order and the allocation ledger.
"""
import pytest
from datetime import datetime, timedelta

from orchestrator.engine.allocation import (
    AllocationItem, AllocationLedger, BurnerPacker, EquipmentAllocator, Placement,
    UnplaceReason, UnplacedStep, candidate_starts
)
from orchestrator.engine.backward_solver import BackwardTimeSolver
from orchestrator.engine.step_graph import StepGraphBuilder
from orchestrator.models.schemas import (
    STOVETOP_ID, ConflictType, EquipmentConfig, EquipmentKind, OvenConfig, OvenRequirement,
    OvenWidth, StovetopRequirement
)


def oven(temperature, height=1, width=OvenWidth.FULL, oven_id=None):
    return OvenRequirement(temperature=temperature, height_slots=height, width=width, oven_id=oven_id)


def prepare(recipes, equipment, meal_time, max_workers=1):
    """Graph, items, ledger and allocator for a set of recipes."""
    graph = StepGraphBuilder().build(recipes)
    solution = BackwardTimeSolver(meal_time=meal_time).solve(graph)
    items = [AllocationItem(node) for node in graph.nodes() if node.step.equipment is not None]
    ledger = AllocationLedger(equipment, solution.windows)
    allocator = EquipmentAllocator(equipment, max_workers=max_workers)
    return graph, items, ledger, allocator


@pytest.fixture
def dish(make_step, make_recipe):
    """Factory for a one-step dish that must come off the heat at serving time."""
    def _dish(recipe_id, requirement, duration=60, **kwargs):
        return make_recipe(recipe_id, [make_step("cook", duration, equipment=requirement, **kwargs)])

    return _dish


def at(hour, minute=0):
    return datetime(2024, 11, 28, hour, minute)


class TestCandidateStarts:
    """Start times tried for interval packing."""

    def test_latest_first_then_booked_edges(self):
        booked = [
            Placement(("a", "x"), "oven-1", EquipmentKind.OVEN, at(15), at(16)),
            Placement(("b", "x"), "oven-1", EquipmentKind.OVEN, at(14), at(14, 30)),
        ]

        starts = candidate_starts(booked, timedelta(minutes=60), at(13), at(15, 30))

        assert starts == [at(15, 30), at(14), at(13)]

    def test_edges_outside_window_ignored(self):
        booked = [Placement(("a", "x"), "oven-1", EquipmentKind.OVEN, at(11), at(12))]

        assert candidate_starts(booked, timedelta(minutes=60), at(13), at(15)) == [at(15)]

    def test_empty_window(self):
        assert candidate_starts([], timedelta(minutes=30), at(15), at(14)) == []


class TestPlacementOrder:
    """Least flexible first, then longest, then input order."""

    def test_sort_key_order(self, meal_time, single_oven, dish):
        recipes = [
            dish("lazy", oven(350), duration=30),
            dish("short", oven(350), duration=20, max_wait_minutes=30),
            dish("long", oven(350), duration=90, max_wait_minutes=30),
            dish("urgent", oven(350), duration=10, max_wait_minutes=0),
        ]
        _, items, _, allocator = prepare(recipes, single_oven, meal_time)

        ordered = sorted(items, key=AllocationItem.sort_key)

        assert [i.key[0] for i in ordered] == ["urgent", "long", "short", "lazy"]

    def test_ties_keep_input_order(self, meal_time, single_oven, dish):
        recipes = [dish("first", oven(350)), dish("second", oven(350))]
        _, items, _, allocator = prepare(recipes, single_oven, meal_time)

        assert [i.key[0] for i in allocator.order(items)] == ["first", "second"]

    def test_temperature_partitions_ordered_by_least_flexible_member(self, meal_time, single_oven, dish):
        recipes = [
            dish("rolls", oven(400), max_wait_minutes=45),
            dish("pie", oven(350), max_wait_minutes=60),
            dish("yams", oven(350), max_wait_minutes=5),
        ]
        _, items, _, allocator = prepare(recipes, single_oven, meal_time)

        partitions = allocator.partition_by_temperature(items)

        assert [[i.key[0] for i in group] for group in partitions] == [["yams", "pie"], ["rolls"]]

    def test_oven_items_before_stovetop(self, meal_time, single_oven, dish):
        recipes = [dish("soup", StovetopRequirement(burners=1)), dish("rolls", oven(400))]
        _, items, _, allocator = prepare(recipes, single_oven, meal_time)

        assert [i.kind for i in allocator.order(items)] == [EquipmentKind.OVEN, EquipmentKind.STOVETOP]


class TestOvenRows:
    """Rack-row packing on a single oven."""

    def test_full_width_dishes_take_separate_rows(self, meal_time, single_oven, dish):
        recipes = [dish("a", oven(350)), dish("b", oven(350))]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.complete
        assert sorted(p.row for p in result.placed) == [1, 2]
        assert all(p.start == at(17) for p in result.placed)

    def test_third_full_width_dish_has_no_row(self, meal_time, single_oven, dish):
        recipes = [dish("a", oven(350)), dish("b", oven(350)), dish("c", oven(350))]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert len(result.unplaced) == 1
        unplaced = result.unplaced[0]
        assert unplaced.key == ("c", "cook")
        assert unplaced.reason == UnplaceReason.RACK_SPACE
        assert unplaced.reason.conflict_type == ConflictType.INSUFFICIENT_RACK_SPACE
        assert set(unplaced.blocking_keys) == {("a", "cook"), ("b", "cook")}
        assert unplaced.equipment_ids == ("oven-1",)

    def test_half_width_dishes_share_a_row(self, meal_time, single_oven, dish):
        recipes = [
            dish("stuffing", oven(375, height=2, width=OvenWidth.HALF)),
            dish("beans", oven(375, height=3, width=OvenWidth.HALF)),
        ]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.complete
        assert [p.row for p in result.placed] == [1, 1]

    def test_half_width_dishes_too_tall_to_share(self, meal_time, single_oven, dish):
        recipes = [
            dish("stuffing", oven(375, height=3, width=OvenWidth.HALF)),
            dish("beans", oven(375, height=3, width=OvenWidth.HALF)),
        ]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert sorted(p.row for p in result.placed) == [1, 2]

    def test_row_holds_at_most_two_half_dishes(self, meal_time, single_oven, dish):
        recipes = [
            dish("a", oven(375, height=1, width=OvenWidth.HALF)),
            dish("b", oven(375, height=1, width=OvenWidth.HALF)),
            dish("c", oven(375, height=1, width=OvenWidth.HALF)),
        ]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        rows = {p.key[0]: p.row for p in result.placed}
        assert rows == {"a": 1, "b": 1, "c": 2}

    def test_half_width_never_joins_full_width_row(self, meal_time, single_oven, dish):
        recipes = [
            dish("roast", oven(375, height=2)),
            dish("rolls", oven(375, height=1, width=OvenWidth.HALF)),
        ]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        rows = {p.key[0]: p.row for p in result.placed}
        assert rows == {"roast": 1, "rolls": 2}

    def test_dish_taller_than_rack(self, meal_time, single_oven, dish):
        _, items, ledger, allocator = prepare([dish("ham", oven(325, height=6))], single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.unplaced[0].reason == UnplaceReason.RACK_SPACE
        assert result.unplaced[0].blocking_keys == ()
        assert "tall" in result.unplaced[0].detail


class TestOvenTemperatures:
    """Only one temperature per oven at any moment."""

    def test_temperature_clash_on_single_oven(self, meal_time, single_oven, dish):
        recipes = [dish("rolls", oven(375)), dish("turkey", oven(325))]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert len(result.placed) == 1
        unplaced = result.unplaced[0]
        assert unplaced.key == ("turkey", "cook")
        assert unplaced.reason == UnplaceReason.TEMPERATURE_CLASH
        assert unplaced.reason.conflict_type == ConflictType.EQUIPMENT_OVERBOOKED
        assert unplaced.blocking_keys == (("rolls", "cook"),)

    def test_second_oven_takes_other_temperature(self, meal_time, two_ovens, dish):
        recipes = [dish("rolls", oven(375)), dish("turkey", oven(325))]
        _, items, ledger, allocator = prepare(recipes, two_ovens, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.complete
        units = {p.key[0]: p.unit_id for p in result.placed}
        assert units == {"rolls": "oven-1", "turkey": "oven-2"}

    def test_same_temperature_prefers_running_oven(self, meal_time, two_ovens, dish):
        recipes = [dish("a", oven(350)), dish("b", oven(400)), dish("c", oven(350))]
        _, items, ledger, allocator = prepare(recipes, two_ovens, meal_time)

        result = allocator.allocate(items, ledger)

        units = {p.key[0]: p.unit_id for p in result.placed}
        assert units["a"] == units["c"] == "oven-1"
        assert units["b"] == "oven-2"

    def test_oven_id_restriction(self, meal_time, two_ovens, dish):
        recipes = [dish("pie", oven(350, oven_id="oven-2"))]
        _, items, ledger, allocator = prepare(recipes, two_ovens, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.placed[0].unit_id == "oven-2"

    def test_unknown_oven_id(self, meal_time, single_oven, dish):
        recipes = [dish("pie", oven(350, oven_id="convection"))]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.unplaced[0].reason == UnplaceReason.NO_EQUIPMENT
        assert "convection" in result.unplaced[0].detail

    def test_no_oven_configured(self, meal_time, dish):
        equipment = EquipmentConfig(ovens=[], stovetop_burners=2)
        _, items, ledger, allocator = prepare([dish("pie", oven(350))], equipment, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.unplaced[0].reason == UnplaceReason.NO_EQUIPMENT


class TestStovetop:
    """Burner-count packing."""

    def test_burners_within_capacity(self, meal_time, single_oven, dish):
        recipes = [dish(name, StovetopRequirement(burners=2)) for name in ("gravy", "potatoes")]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        assert result.complete
        assert all(p.unit_id == STOVETOP_ID for p in result.placed)

    def test_burners_overbooked(self, meal_time, single_oven, dish):
        recipes = [dish(name, StovetopRequirement(burners=2)) for name in ("gravy", "potatoes", "peas")]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)

        result = allocator.allocate(items, ledger)

        unplaced = result.unplaced[0]
        assert unplaced.key == ("peas", "cook")
        assert unplaced.reason == UnplaceReason.BURNER_COUNT
        assert unplaced.reason.conflict_type == ConflictType.BURNER_OVERBOOKED
        assert set(unplaced.blocking_keys) == {("gravy", "cook"), ("potatoes", "cook")}

    def test_more_burners_than_stovetop_has(self, meal_time, single_oven, dish):
        _, items, ledger, allocator = prepare(
            [dish("stock", StovetopRequirement(burners=5))], single_oven, meal_time
        )

        result = allocator.allocate(items, ledger)

        assert result.unplaced[0].reason == UnplaceReason.BURNER_COUNT
        assert "stovetop has 4" in result.unplaced[0].detail

    def test_usage_points(self):
        booked = [
            Placement(("a", "x"), STOVETOP_ID, EquipmentKind.STOVETOP, at(16), at(17), burners=1),
            Placement(("b", "x"), STOVETOP_ID, EquipmentKind.STOVETOP, at(16, 30), at(17, 30), burners=2),
        ]

        points = BurnerPacker(4).usage_points(booked)

        assert points == [(at(16), 1), (at(16, 30), 3), (at(17), 2), (at(17, 30), 0)]


class TestPlaceWithinWindow:
    """Single placements search the window latest first."""

    def test_place_moves_earlier_around_booking(self, meal_time, single_oven, dish):
        recipes = [dish("rolls", oven(375)), dish("turkey", oven(325))]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)
        rolls, turkey = items
        allocator.place(rolls, at(17), at(17), ledger)

        outcome = allocator.place(turkey, at(15), at(17), ledger)

        assert isinstance(outcome, Placement)
        assert outcome.start == at(16)
        assert ledger.get(turkey.key) is outcome

    def test_place_failure_leaves_ledger_untouched(self, meal_time, single_oven, dish):
        recipes = [dish("rolls", oven(375)), dish("turkey", oven(325))]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time)
        rolls, turkey = items
        allocator.place(rolls, at(17), at(17), ledger)

        outcome = allocator.place(turkey, at(16, 30), at(17), ledger)

        assert isinstance(outcome, UnplacedStep)
        assert ledger.get(turkey.key) is None
        assert outcome.window_start == at(16, 30)


class TestParallelAllocation:
    """Worker count never changes the outcome."""

    def test_parallel_matches_inline(self, meal_time, single_oven, dish):
        recipes = [
            dish("rolls", oven(375)),
            dish("turkey", oven(325)),
            dish("gravy", StovetopRequirement(burners=2)),
            dish("potatoes", StovetopRequirement(burners=2)),
            dish("peas", StovetopRequirement(burners=1)),
        ]
        _, items, ledger, allocator = prepare(recipes, single_oven, meal_time, max_workers=1)
        _, items_p, ledger_p, allocator_p = prepare(recipes, single_oven, meal_time, max_workers=2)

        inline = allocator.allocate(items, ledger)
        parallel = allocator_p.allocate(items_p, ledger_p)

        assert inline.placed == parallel.placed
        assert [u.key for u in inline.unplaced] == [u.key for u in parallel.unplaced]


class TestAllocationLedger:
    """Booking state and snapshots."""

    def test_double_booking_rejected(self, single_oven):
        ledger = AllocationLedger(single_oven, {})
        placement = Placement(("a", "x"), "oven-1", EquipmentKind.OVEN, at(16), at(17), temperature=350, row=1)
        ledger.book(placement)

        with pytest.raises(ValueError):
            ledger.book(placement)

    def test_snapshot_and_restore(self, single_oven):
        ledger = AllocationLedger(single_oven, {})
        first = Placement(("a", "x"), "oven-1", EquipmentKind.OVEN, at(16), at(17), temperature=350, row=1)
        ledger.book(first)
        snapshot = ledger.snapshot()

        ledger.release(("a", "x"))
        ledger.book(Placement(("b", "x"), STOVETOP_ID, EquipmentKind.STOVETOP, at(16), at(17), burners=1))
        ledger.restore(snapshot)

        assert ledger.get(("a", "x")) == first
        assert ledger.get(("b", "x")) is None
        assert ledger.booked_on(STOVETOP_ID) == []

    def test_partial_and_merge(self, single_oven):
        ledger = AllocationLedger(single_oven, {})
        part = ledger.partial([STOVETOP_ID])
        part.book(Placement(("b", "x"), STOVETOP_ID, EquipmentKind.STOVETOP, at(16), at(17), burners=1))

        ledger.merge(part)

        assert part.unit_ids == [STOVETOP_ID]
        assert ledger.get(("b", "x")) is not None
        assert len(ledger.booked_on(STOVETOP_ID)) == 1

    def test_default_equipment(self):
        equipment = EquipmentConfig()

        assert [o.id for o in equipment.ovens] == ["oven-1"]
        assert equipment.ovens[0].capacity_slots == 10
        assert equipment.stovetop_burners == 4

    def test_oven_ids_assigned_by_position(self):
        equipment = EquipmentConfig(ovens=[{"physical_racks": 2}, {"physical_racks": 1}])

        assert [o.id for o in equipment.ovens] == ["oven-1", "oven-2"]
        assert equipment.get_oven("oven-2").physical_racks == 1
        assert equipment.get_oven("oven-9") is None

    def test_duplicate_oven_ids_rejected(self):
        with pytest.raises(ValueError):
            EquipmentConfig(ovens=[OvenConfig(id="main"), OvenConfig(id="main")])
