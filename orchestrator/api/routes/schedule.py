"""
Scheduling API routes.

The recipe-authoring and rendering collaborators talk to the scheduling core
through these endpoints: they post a fully resolved ScheduleRequest and get the
ScheduleReport back as JSON.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from orchestrator.engine.scheduler import MealScheduler
from orchestrator.models.schemas import ScheduleReport, ScheduleRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


class RecipeChainSummary(BaseModel):
    """Structural summary of one validated recipe."""
    recipe_id: str
    recipe_name: str
    step_group_ids: List[str] = Field(..., description="Step groups in chain order")


class ValidationResponse(BaseModel):
    """Response for a structural validation request."""
    valid: bool = True
    recipes: List[RecipeChainSummary] = Field(default_factory=list)


def get_scheduler() -> MealScheduler:
    """Dependency returning a fresh scheduler per request."""
    return MealScheduler()


@router.post("", response_model=ScheduleReport)
def create_schedule(
    request: ScheduleRequest,
    scheduler: MealScheduler = Depends(get_scheduler),
):
    """
    Schedule a meal backward from its serving time.

    Always returns a report when the input is structurally valid, even if
    some dishes cannot be made on time or equipment is overbooked; those
    problems are listed under `conflicts`.

    Malformed recipes are rejected with 422 and error code `RECIPE_MALFORMED`.
    """
    report = scheduler.schedule(request)
    logger.info(
        f"Scheduled '{request.meal_name or 'meal'}': "
        f"{len(report.conflicts)} conflict(s)"
    )
    return report


@router.post("/validate", response_model=ValidationResponse)
def validate_schedule_request(
    request: ScheduleRequest,
    scheduler: MealScheduler = Depends(get_scheduler),
):
    """
    Check recipe structure without scheduling.

    Returns each recipe's step groups in the order they will be chained.
    """
    graph = scheduler.validate(request)
    return ValidationResponse(
        recipes=[
            RecipeChainSummary(
                recipe_id=chain.recipe.id,
                recipe_name=chain.recipe.name,
                step_group_ids=[node.step.id for node in chain.nodes],
            )
            for chain in graph
        ]
    )
