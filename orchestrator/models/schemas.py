"""
Pydantic data models for the meal orchestrator scheduling core.

Inputs (recipes, equipment, the schedule request) are frozen snapshots;
outputs (assignments, timeline, conflicts, the report) are produced fresh on
every scheduling run.
"""
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
)

from orchestrator.config import settings


class RecipeCategory(str, Enum):
    """Dish categories for a meal."""
    MAIN = "main"
    STARCH = "starch"
    VEGETABLE = "vegetable"
    BREAD = "bread"
    DESSERT = "dessert"
    APPETIZER = "appetizer"


class OvenWidth(str, Enum):
    """How much of a rack row a dish covers."""
    FULL = "full"
    HALF = "half"


class EquipmentKind(str, Enum):
    """Equipment classes for allocation and reporting."""
    OVEN = "oven"
    STOVETOP = "stovetop"
    COUNTER = "counter"


class ConflictType(str, Enum):
    """Kinds of scheduling conflicts surfaced in the report."""
    UNMET_DEADLINE = "unmet_deadline"
    EQUIPMENT_OVERBOOKED = "equipment_overbooked"
    INSUFFICIENT_RACK_SPACE = "insufficient_rack_space"
    BURNER_OVERBOOKED = "burner_overbooked"


# Conflict types that mean some equipment could not take a step
EQUIPMENT_CONFLICTS = frozenset({
    ConflictType.EQUIPMENT_OVERBOOKED,
    ConflictType.INSUFFICIENT_RACK_SPACE,
    ConflictType.BURNER_OVERBOOKED,
})


class ConflictStatus(str, Enum):
    """Terminal state of a conflict."""
    FATAL = "fatal"  # Recipe excluded before allocation
    UNRESOLVED = "unresolved"  # Repair attempted once and failed


class RunState(str, Enum):
    """States of a single scheduling run."""
    BUILDING = "building"
    BACKWARD_SOLVED = "backward_solved"
    ALLOCATED = "allocated"
    RESOLVED = "resolved"
    CONFLICTS_REMAIN = "conflicts_remain"
    REPORTED = "reported"
    MALFORMED_RECIPE = "malformed_recipe"
    UNMET_DEADLINE = "unmet_deadline"


class TimelineAction(str, Enum):
    """What happens at a timeline entry."""
    START = "start"
    FINISH = "finish"
    SERVE = "serve"


# ============================================================================
# Inputs
# ============================================================================

class OvenRequirement(BaseModel):
    """A step that needs oven space at a given temperature."""
    kind: Literal["oven"] = "oven"
    temperature: int = Field(..., gt=0, description="Oven temperature (°F)")
    height_slots: int = Field(default=1, ge=1, description="Rack positions the dish is tall")
    width: OvenWidth = Field(default=OvenWidth.FULL, description="full or half rack width")
    oven_id: Optional[str] = Field(default=None, description="Restrict to one oven unit")

    model_config = ConfigDict(frozen=True)


class StovetopRequirement(BaseModel):
    """A step that needs one or more burners."""
    kind: Literal["stovetop"] = "stovetop"
    burners: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True)


EquipmentRequirement = Annotated[
    Union[OvenRequirement, StovetopRequirement],
    Field(discriminator="kind"),
]


class StepGroup(BaseModel):
    """One atomic, time-bounded phase of a recipe (prep, cook, rest...)."""
    id: str = Field(..., description="Step group ID, unique within its recipe")
    name: str = Field(..., description="Display name, e.g. 'Roast'")
    sequence: Optional[int] = Field(
        default=None,
        ge=0,
        description="Order within the recipe; defaults to list position",
    )
    duration_minutes: int = Field(..., ge=0, description="Active minutes")
    rest_minutes: int = Field(
        default=0, ge=0, description="Mandatory wait after the step; blocks the next step"
    )
    hold_minutes: int = Field(
        default=0, ge=0, description="Time the result may sit before serving; does not block prep"
    )
    nights_before_serving: Optional[int] = Field(
        default=None, ge=0, description="Pin the step to this many days before serving"
    )
    minutes_before_serving: Optional[int] = Field(
        default=None, ge=0, description="Pin the step start this many minutes before meal time"
    )
    max_wait_minutes: Optional[int] = Field(
        default=None,
        ge=0,
        description="How long the result may wait before quality degrades (0 = immediately)",
    )
    predecessor_id: Optional[str] = Field(
        default=None, description="Step group this one follows, when declared explicitly"
    )
    equipment: Optional[EquipmentRequirement] = None

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "roast",
                    "name": "Roast",
                    "duration_minutes": 180,
                    "rest_minutes": 20,
                    "max_wait_minutes": 15,
                    "equipment": {
                        "kind": "oven",
                        "temperature": 325,
                        "height_slots": 3,
                        "width": "full",
                    },
                }
            ]
        },
    )

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Step group name cannot be empty")
        return v.strip()

    @property
    def blocking_minutes(self) -> int:
        """Minutes before the next step in the recipe may start."""
        return self.duration_minutes + self.rest_minutes

    @property
    def is_pinned(self) -> bool:
        return self.nights_before_serving is not None or self.minutes_before_serving is not None


class Recipe(BaseModel):
    """A dish with an ordered sequence of step groups."""
    id: str = Field(..., description="Unique recipe ID")
    name: str = Field(..., description="Recipe name")
    category: RecipeCategory = RecipeCategory.MAIN
    servings: int = Field(default=4, ge=1, description="Number of servings")
    step_groups: List[StepGroup] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Recipe name cannot be empty")
        return v.strip()


class OvenConfig(BaseModel):
    """One physical oven."""
    id: str = "oven-1"
    physical_racks: int = Field(default=2, ge=1, description="Racks owned (rows)")
    rack_positions: int = Field(default=5, ge=1, description="Vertical positions per rack")

    model_config = ConfigDict(frozen=True)

    @property
    def capacity_slots(self) -> int:
        return self.physical_racks * self.rack_positions


def _default_ovens() -> List[OvenConfig]:
    return [
        OvenConfig(
            id="oven-1",
            physical_racks=settings.default_physical_racks,
            rack_positions=settings.default_rack_positions,
        )
    ]


STOVETOP_ID = "stovetop"


class EquipmentConfig(BaseModel):
    """Fixed equipment available for one meal."""
    ovens: List[OvenConfig] = Field(default_factory=_default_ovens)
    stovetop_burners: int = Field(default_factory=lambda: settings.default_stovetop_burners, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def assign_oven_ids(cls, data: Any) -> Any:
        """Give ovens without an explicit id a positional one (oven-1, oven-2, ...)."""
        if not isinstance(data, dict) or not data.get("ovens"):
            return data
        ovens = []
        for index, oven in enumerate(data["ovens"], start=1):
            if isinstance(oven, dict) and not oven.get("id"):
                oven = {**oven, "id": f"oven-{index}"}
            elif isinstance(oven, OvenConfig) and "id" not in oven.model_fields_set:
                oven = oven.model_copy(update={"id": f"oven-{index}"})
            ovens.append(oven)
        return {**data, "ovens": ovens}

    @model_validator(mode="after")
    def oven_ids_must_be_unique(self) -> "EquipmentConfig":
        ids = [oven.id for oven in self.ovens]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate oven ids: {', '.join(duplicates)}")
        if STOVETOP_ID in ids:
            raise ValueError(f"'{STOVETOP_ID}' is reserved for the stovetop")
        return self

    def get_oven(self, oven_id: str) -> Optional[OvenConfig]:
        """Get oven by id."""
        for oven in self.ovens:
            if oven.id == oven_id:
                return oven
        return None


class ScheduleRequest(BaseModel):
    """Everything one scheduling run needs, resolved before the run starts."""
    meal_time: datetime = Field(..., description="When the meal is served")
    meal_name: Optional[str] = None
    kitchen_opens_at: Optional[datetime] = Field(
        default=None,
        description="Earliest moment any step may start (defaults to the planning horizon)",
    )
    recipes: List[Recipe] = Field(default_factory=list)
    equipment: EquipmentConfig = Field(default_factory=EquipmentConfig)

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "meal_time": "2024-11-28T18:00:00",
                    "meal_name": "Thanksgiving",
                    "equipment": {
                        "ovens": [{"physical_racks": 2, "rack_positions": 5}],
                        "stovetop_burners": 4,
                    },
                    "recipes": [
                        {
                            "id": "turkey",
                            "name": "Roast Turkey",
                            "category": "main",
                            "servings": 12,
                            "step_groups": [
                                {"id": "prep", "name": "Prep", "duration_minutes": 30},
                                {
                                    "id": "roast",
                                    "name": "Roast",
                                    "duration_minutes": 180,
                                    "rest_minutes": 20,
                                    "hold_minutes": 10,
                                    "equipment": {
                                        "kind": "oven",
                                        "temperature": 325,
                                        "height_slots": 3,
                                    },
                                },
                            ],
                        }
                    ],
                }
            ]
        },
    )

    @model_validator(mode="after")
    def kitchen_must_open_before_meal(self) -> "ScheduleRequest":
        if self.kitchen_opens_at is None:
            return self
        if (self.kitchen_opens_at.tzinfo is None) != (self.meal_time.tzinfo is None):
            raise ValueError(
                "meal_time and kitchen_opens_at must both include a timezone or both omit it"
            )
        if self.kitchen_opens_at >= self.meal_time:
            raise ValueError("kitchen_opens_at must be before meal_time")
        return self


# ============================================================================
# Outputs
# ============================================================================

class StepRef(BaseModel):
    """Reference to one step group of one recipe."""
    recipe_id: str
    step_group_id: str
    recipe_name: str
    step_name: str

    def label(self) -> str:
        return f"{self.recipe_name}: {self.step_name}"


class TimeSlotAssignment(BaseModel):
    """A step group bound to equipment and a concrete time slot."""
    recipe_id: str
    recipe_name: str
    step_group_id: str
    step_name: str
    equipment_kind: EquipmentKind
    equipment_id: Optional[str] = Field(default=None, description="None for counter work")
    start: datetime
    end: datetime = Field(..., description="start + duration; equipment is released here")
    rest_until: datetime = Field(..., description="end + rest; the next step may start here")
    hold_until: Optional[datetime] = Field(
        default=None, description="Latest serving moment; set only on a recipe's final step"
    )
    temperature: Optional[int] = None
    rack_row: Optional[int] = None
    burners: Optional[int] = None
    wait_minutes: int = Field(
        default=0, description="Gap between rest_until and the dependent step or serving"
    )
    day_offset: int = Field(default=0, description="Calendar days before serving day")

    @property
    def ref(self) -> StepRef:
        return StepRef(
            recipe_id=self.recipe_id,
            step_group_id=self.step_group_id,
            recipe_name=self.recipe_name,
            step_name=self.step_name,
        )


class TimelineEntry(BaseModel):
    """One line of the chronological kitchen timeline."""
    time: datetime
    action: TimelineAction
    description: str
    step: Optional[StepRef] = None
    equipment_id: Optional[str] = None
    day_offset: int = 0


class TemperatureSegment(BaseModel):
    """A stretch of time an oven holds one temperature."""
    start: datetime
    end: datetime
    temperature: int


class BurnerUsagePoint(BaseModel):
    """Burners in use from this moment until the next point."""
    time: datetime
    burners_in_use: int


class EquipmentUtilization(BaseModel):
    """Usage summary for one equipment unit."""
    equipment_id: str
    equipment_kind: EquipmentKind
    capacity: int = Field(..., description="Rack slots for ovens, burners for the stovetop")
    assignment_count: int = 0
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    busy_minutes: int = 0
    peak_usage: int = 0
    temperature_segments: List[TemperatureSegment] = Field(default_factory=list)
    burner_usage: List[BurnerUsagePoint] = Field(default_factory=list)

    @property
    def temperature_changes(self) -> int:
        """Number of times the oven is set to a different temperature."""
        changes = 0
        for previous, current in zip(self.temperature_segments, self.temperature_segments[1:]):
            if previous.temperature != current.temperature:
                changes += 1
        return changes


class Conflict(BaseModel):
    """A flagged scheduling problem, tied to specific steps and equipment."""
    type: ConflictType
    status: ConflictStatus
    message: str
    steps: List[StepRef] = Field(default_factory=list)
    equipment_ids: List[str] = Field(default_factory=list)

    @property
    def recipe_ids(self) -> List[str]:
        return list(dict.fromkeys(step.recipe_id for step in self.steps))


class ScheduleWarning(BaseModel):
    """Non-fatal note, e.g. a step shifted earlier to free equipment."""
    message: str
    step: Optional[StepRef] = None
    shifted_minutes: int = 0


class ScheduleReport(BaseModel):
    """Final output of a scheduling run."""
    meal_time: datetime
    meal_name: Optional[str] = None
    final_state: RunState
    state_history: List[RunState] = Field(default_factory=list)
    assignments: List[TimeSlotAssignment] = Field(default_factory=list)
    timeline: List[TimelineEntry] = Field(default_factory=list)
    utilization: List[EquipmentUtilization] = Field(default_factory=list)
    conflicts: List[Conflict] = Field(default_factory=list)
    warnings: List[ScheduleWarning] = Field(default_factory=list)

    @computed_field
    @property
    def all_ready_by_meal_time(self) -> bool:
        """True when no conflict of any kind remains."""
        return not self.conflicts

    @computed_field
    @property
    def no_equipment_overbooked(self) -> bool:
        """True when no equipment conflict remains."""
        return not any(c.type in EQUIPMENT_CONFLICTS for c in self.conflicts)

    def entries_by_day(self) -> Dict[date, List[TimelineEntry]]:
        """Group timeline entries by calendar day, in chronological order."""
        days: Dict[date, List[TimelineEntry]] = {}
        for entry in self.timeline:
            days.setdefault(entry.time.date(), []).append(entry)
        return days

    def get_assignment(self, recipe_id: str, step_group_id: str) -> Optional[TimeSlotAssignment]:
        """Get the assignment for a step group, if it was placed."""
        for assignment in self.assignments:
            if assignment.recipe_id == recipe_id and assignment.step_group_id == step_group_id:
                return assignment
        return None

    def conflicts_of_type(self, conflict_type: ConflictType) -> List[Conflict]:
        return [c for c in self.conflicts if c.type == conflict_type]
