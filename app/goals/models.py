"""Goal API contract: Pydantic v2 models."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class Goal(BaseModel):
    id: str
    owner_id: str
    goal_type: str
    target_value: float
    current_value: float = 0.0
    unit: str
    is_active: bool = True
    last_reset_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    percentage: float | None = None  # Derived on read; never stored


class GoalCreate(BaseModel):
    owner_id: str
    goal_type: str
    target_value: float
    unit: str | None = None


class GoalSuggestion(BaseModel):
    """Suggested goal as produced by the recommendation service."""

    type: str = Field(validation_alias=AliasChoices("type", "goal_type"))
    target: float = Field(validation_alias=AliasChoices("target", "target_value"))
    unit: str | None = None


class SuggestionCreate(BaseModel):
    owner_id: str
    suggestion: GoalSuggestion


class OwnerRequest(BaseModel):
    owner_id: str


class GoalList(BaseModel):
    owner_id: str
    refreshed_at: datetime  # Server time; clients drop results older than what they hold
    goals: list[Goal] = Field(default_factory=list)


class RefreshResult(BaseModel):
    owner_id: str
    refreshed_at: datetime
    reset: list[str] = Field(default_factory=list)
    refreshed: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)


class GoalTypeInfo(BaseModel):
    goal_type: str
    label: str
    unit: str
    window: str
    default_target: float
