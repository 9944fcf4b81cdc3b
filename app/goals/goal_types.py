"""Closed goal-type lookup table.

Each GoalTypeSpec ties a goal type to the activity-log column it aggregates,
the period window it is measured over, and its display unit. Adding a goal
type is one entry here; the aggregator dispatches on (source, aggregation).
"""

from __future__ import annotations

from dataclasses import dataclass

from app.goals.errors import ValidationError

WINDOW_KINDS = ("daily", "weekly")

# Numeric columns each activity source exposes for summing
SOURCE_FIELDS: dict[str, tuple[str, ...]] = {
    "nutrition": ("calories", "protein", "carbs", "fats"),
    "fitness": ("duration_minutes", "calories_burned"),
}


@dataclass(frozen=True, slots=True)
class GoalTypeSpec:
    goal_type: str
    window: str  # "daily" | "weekly"
    source: str  # "nutrition" | "fitness"
    aggregation: str  # "sum" | "count"
    unit: str
    label: str
    default_target: float
    field: str | None = None

    def __post_init__(self) -> None:
        if self.window not in WINDOW_KINDS:
            raise ValueError(f"{self.goal_type}: unknown window kind {self.window!r}")
        if self.source not in SOURCE_FIELDS:
            raise ValueError(f"{self.goal_type}: unknown activity source {self.source!r}")
        if self.aggregation == "sum":
            if self.field not in SOURCE_FIELDS[self.source]:
                raise ValueError(f"{self.goal_type}: {self.field!r} is not a {self.source} field")
        elif self.aggregation == "count":
            if self.field is not None:
                raise ValueError(f"{self.goal_type}: count aggregation takes no field")
        else:
            raise ValueError(f"{self.goal_type}: unknown aggregation {self.aggregation!r}")
        if self.default_target <= 0:
            raise ValueError(f"{self.goal_type}: default target must be positive")

    @property
    def is_weekly(self) -> bool:
        return self.window == "weekly"


GOAL_TYPES: dict[str, GoalTypeSpec] = {
    spec.goal_type: spec
    for spec in (
        GoalTypeSpec("daily_calories", "daily", "nutrition", "sum", "calories", "Daily Calories", 2000.0, "calories"),
        GoalTypeSpec("daily_protein", "daily", "nutrition", "sum", "grams", "Daily Protein", 120.0, "protein"),
        GoalTypeSpec("daily_carbs", "daily", "nutrition", "sum", "grams", "Daily Carbs", 250.0, "carbs"),
        GoalTypeSpec("daily_fats", "daily", "nutrition", "sum", "grams", "Daily Fats", 70.0, "fats"),
        GoalTypeSpec("weekly_workouts", "weekly", "fitness", "count", "workouts", "Weekly Workouts", 4.0),
        GoalTypeSpec(
            "weekly_active_minutes", "weekly", "fitness", "sum", "minutes", "Weekly Active Minutes", 150.0,
            "duration_minutes",
        ),
        GoalTypeSpec(
            "daily_calories_burned", "daily", "fitness", "sum", "calories", "Daily Calories Burned", 500.0,
            "calories_burned",
        ),
    )
}

# Goals a fresh account starts with
DEFAULT_GOAL_TYPES: tuple[str, ...] = ("daily_calories", "daily_protein", "weekly_workouts")


def get_goal_type(goal_type: str) -> GoalTypeSpec | None:
    return GOAL_TYPES.get(goal_type)


def require_goal_type(goal_type: str) -> GoalTypeSpec:
    spec = GOAL_TYPES.get(goal_type)
    if spec is None:
        raise ValidationError(f"Unknown goal type: {goal_type}")
    return spec


def list_goal_types() -> list[GoalTypeSpec]:
    return list(GOAL_TYPES.values())
