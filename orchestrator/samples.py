"""
Sample meal used by the CLI `example` command and the demo script.
"""
from datetime import datetime
from typing import Optional

from orchestrator.models.schemas import (
    EquipmentConfig, OvenConfig, OvenRequirement, OvenWidth, Recipe, RecipeCategory,
    ScheduleRequest, StepGroup, StovetopRequirement
)


def thanksgiving_request(meal_time: Optional[datetime] = None) -> ScheduleRequest:
    """
    A five-dish holiday dinner on one oven and a four-burner stovetop.

    Args:
        meal_time: Serving time; defaults to 6:00 PM on Thanksgiving 2024.
    """
    meal_time = meal_time or datetime(2024, 11, 28, 18, 0)

    turkey = Recipe(
        id="turkey",
        name="Roast Turkey",
        category=RecipeCategory.MAIN,
        servings=12,
        step_groups=[
            StepGroup(id="brine", name="Brine", duration_minutes=20, nights_before_serving=1),
            StepGroup(id="prep", name="Prep", duration_minutes=30),
            StepGroup(
                id="roast",
                name="Roast",
                duration_minutes=180,
                rest_minutes=20,
                hold_minutes=10,
                max_wait_minutes=15,
                equipment=OvenRequirement(temperature=325, height_slots=3),
            ),
        ],
    )
    stuffing = Recipe(
        id="stuffing",
        name="Sausage Stuffing",
        category=RecipeCategory.STARCH,
        servings=10,
        step_groups=[
            StepGroup(
                id="brown",
                name="Brown sausage",
                duration_minutes=15,
                equipment=StovetopRequirement(burners=1),
            ),
            StepGroup(
                id="bake",
                name="Bake",
                duration_minutes=45,
                hold_minutes=30,
                max_wait_minutes=30,
                equipment=OvenRequirement(temperature=325, height_slots=2, width=OvenWidth.HALF),
            ),
        ],
    )
    potatoes = Recipe(
        id="potatoes",
        name="Mashed Potatoes",
        category=RecipeCategory.STARCH,
        servings=10,
        step_groups=[
            StepGroup(id="peel", name="Peel and cube", duration_minutes=20),
            StepGroup(
                id="boil",
                name="Boil",
                duration_minutes=25,
                max_wait_minutes=20,
                equipment=StovetopRequirement(burners=1),
            ),
            StepGroup(id="mash", name="Mash", duration_minutes=10, hold_minutes=15, max_wait_minutes=20),
        ],
    )
    green_beans = Recipe(
        id="green-beans",
        name="Green Bean Casserole",
        category=RecipeCategory.VEGETABLE,
        servings=8,
        step_groups=[
            StepGroup(
                id="blanch",
                name="Blanch beans",
                duration_minutes=10,
                equipment=StovetopRequirement(burners=1),
            ),
            StepGroup(
                id="bake",
                name="Bake",
                duration_minutes=30,
                max_wait_minutes=20,
                equipment=OvenRequirement(temperature=375, height_slots=2, width=OvenWidth.HALF),
            ),
        ],
    )
    pie = Recipe(
        id="pie",
        name="Pumpkin Pie",
        category=RecipeCategory.DESSERT,
        servings=8,
        step_groups=[
            StepGroup(id="dough", name="Make dough", duration_minutes=20, rest_minutes=60, nights_before_serving=1),
            StepGroup(
                id="bake",
                name="Bake",
                duration_minutes=55,
                rest_minutes=120,
                nights_before_serving=1,
                minutes_before_serving=0,
                equipment=OvenRequirement(temperature=350, height_slots=2),
            ),
        ],
    )

    return ScheduleRequest(
        meal_time=meal_time,
        meal_name="Thanksgiving Dinner",
        recipes=[turkey, stuffing, potatoes, green_beans, pie],
        equipment=EquipmentConfig(
            ovens=[OvenConfig(id="oven-1", physical_racks=2, rack_positions=5)],
            stovetop_burners=4,
        ),
    )
