"""Goal engine error taxonomy."""

from __future__ import annotations


class GoalEngineError(Exception):
    """Base class for errors raised by the goal engine."""


class ValidationError(GoalEngineError):
    """Invalid target value or unknown goal type. Nothing was written."""


class AggregationFailure(GoalEngineError):
    """An activity-log query failed; the affected goals were left untouched."""

    def __init__(self, message: str, goal_ids: list[str] | None = None):
        super().__init__(message)
        self.goal_ids = goal_ids or []


class ConcurrentModificationConflict(GoalEngineError):
    """A conditional update lost the race to another writer."""


class NotFoundError(GoalEngineError):
    """The referenced goal does not exist."""
