"""
Shared pytest fixtures for meal orchestrator tests.

This module provides common fixtures for:
- A fixed meal time and equipment configurations
- Factory functions for steps, recipes and schedule requests
- Scheduler and FastAPI test client
"""
import pytest
from datetime import datetime
from typing import Generator, List, Optional

from fastapi.testclient import TestClient

from orchestrator.config import get_settings
from orchestrator.engine.scheduler import MealScheduler
from orchestrator.main import app
from orchestrator.models.schemas import (
    EquipmentConfig, OvenConfig, OvenRequirement, OvenWidth, Recipe, ScheduleRequest,
    StepGroup
)


# ============================================================================
# Time and Equipment Fixtures
# ============================================================================

@pytest.fixture
def meal_time() -> datetime:
    """Thanksgiving dinner, 6:00 PM."""
    return datetime(2024, 11, 28, 18, 0)


@pytest.fixture
def single_oven() -> EquipmentConfig:
    """One oven with 2 racks of 5 positions and a 4-burner stovetop."""
    return EquipmentConfig(
        ovens=[OvenConfig(id="oven-1", physical_racks=2, rack_positions=5)],
        stovetop_burners=4,
    )


@pytest.fixture
def two_ovens() -> EquipmentConfig:
    return EquipmentConfig(
        ovens=[
            OvenConfig(id="oven-1", physical_racks=2, rack_positions=5),
            OvenConfig(id="oven-2", physical_racks=1, rack_positions=5),
        ],
        stovetop_burners=4,
    )


# ============================================================================
# Factory Fixtures
# ============================================================================

def oven(temperature: int, height: int = 1, width: OvenWidth = OvenWidth.FULL, oven_id: Optional[str] = None):
    """Shorthand for an oven requirement."""
    return OvenRequirement(temperature=temperature, height_slots=height, width=width, oven_id=oven_id)


@pytest.fixture
def make_step():
    """Factory for StepGroup with sensible defaults."""
    def _make_step(step_id: str, duration: int = 30, **kwargs) -> StepGroup:
        kwargs.setdefault("name", step_id.replace("-", " ").title())
        return StepGroup(id=step_id, duration_minutes=duration, **kwargs)

    return _make_step


@pytest.fixture
def make_recipe():
    """Factory for Recipe from a list of step groups."""
    def _make_recipe(recipe_id: str, steps: List[StepGroup], **kwargs) -> Recipe:
        kwargs.setdefault("name", recipe_id.replace("-", " ").title())
        return Recipe(id=recipe_id, step_groups=steps, **kwargs)

    return _make_recipe


@pytest.fixture
def make_request(meal_time, single_oven):
    """Factory for ScheduleRequest defaulting to the single-oven kitchen."""
    def _make_request(recipes: List[Recipe], **kwargs) -> ScheduleRequest:
        kwargs.setdefault("meal_time", meal_time)
        kwargs.setdefault("equipment", single_oven)
        return ScheduleRequest(recipes=recipes, **kwargs)

    return _make_request


@pytest.fixture
def turkey_recipe(make_step, make_recipe) -> Recipe:
    """Turkey: prep 30 min, roast 180 min at 325°F, rest 20 min, hold 10 min."""
    return make_recipe(
        "turkey",
        [
            make_step("prep", 30),
            make_step(
                "roast",
                180,
                rest_minutes=20,
                hold_minutes=10,
                max_wait_minutes=15,
                equipment=oven(325, height=3),
            ),
        ],
        name="Roast Turkey",
    )


# ============================================================================
# Scheduler and Client Fixtures
# ============================================================================

@pytest.fixture
def test_settings():
    """Settings with deterministic scheduling defaults."""
    return get_settings(
        repair_strategy="shift_earlier",
        default_max_wait_minutes=60,
        allocator_max_workers=1,
    )


@pytest.fixture
def scheduler(test_settings) -> MealScheduler:
    return MealScheduler(config=test_settings)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """FastAPI test client."""
    with TestClient(app) as test_client:
        yield test_client
