#!/usr/bin/env python3
"""
Demo script to validate the meal orchestrator scheduling core.
Schedules a holiday dinner, then adds a dish that competes for the oven to
show repair warnings and unresolved conflicts.
"""
from orchestrator.engine.scheduler import MealScheduler
from orchestrator.models.schemas import OvenRequirement, Recipe, RecipeCategory, StepGroup
from orchestrator.samples import thanksgiving_request


def print_section(title: str):
    """Print a formatted section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70 + "\n")


def print_report(report):
    """Print a schedule report in a readable format."""
    current_day = None
    for entry in report.timeline:
        if entry.time.date() != current_day:
            current_day = entry.time.date()
            print(f"\n{current_day.strftime('%A, %B %d, %Y')}:")
        print(f"  {entry.time:%I:%M %p}  {entry.description}")

    print("\nOven usage:")
    for usage in report.utilization:
        if usage.temperature_segments:
            temps = " -> ".join(f"{s.temperature}°F" for s in usage.temperature_segments)
            print(f"  {usage.equipment_id}: {temps} ({usage.busy_minutes} min busy)")

    for warning in report.warnings:
        print(f"  ⚠ {warning.message}")
    for conflict in report.conflicts:
        print(f"  ✗ [{conflict.type.value}] {conflict.message}")

    status = "✓ ready by meal time" if report.all_ready_by_meal_time else "✗ conflicts remain"
    print(f"\nResult: {status} (final state: {report.final_state.value})")


def main():
    """Run scheduling demonstration."""
    print_section("Meal Orchestrator Demo")
    scheduler = MealScheduler()

    # STEP 1: Schedule the sample dinner
    print_section("STEP 1: Thanksgiving Dinner")
    request = thanksgiving_request()
    print(f"Scheduling {len(request.recipes)} dishes for {request.meal_time:%A %I:%M %p}...")
    print_report(scheduler.schedule(request))

    # STEP 2: Add rolls that need the oven while the green beans bake
    print_section("STEP 2: Add Dinner Rolls at 400°F")
    rolls = Recipe(
        id="rolls",
        name="Dinner Rolls",
        category=RecipeCategory.BREAD,
        step_groups=[
            StepGroup(
                id="bake",
                name="Bake",
                duration_minutes=15,
                hold_minutes=5,
                max_wait_minutes=10,
                equipment=OvenRequirement(temperature=400),
            )
        ],
    )
    crowded = request.model_copy(update={"recipes": request.recipes + [rolls]})
    print_report(scheduler.schedule(crowded))


if __name__ == '__main__':
    main()
