"""Goal lifecycle API: create, replace, delete and list goals."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.goals import aggregator, reset, store
from app.goals.errors import ConcurrentModificationConflict, NotFoundError, ValidationError
from app.goals.goal_types import DEFAULT_GOAL_TYPES, list_goal_types, require_goal_type
from app.goals.models import Goal, GoalList, GoalSuggestion, GoalTypeInfo
from app.goals.periods import period_start, to_utc

logger = logging.getLogger(__name__)


def _validate_target(target_value: float) -> float:
    try:
        value = float(target_value)
    except (TypeError, ValueError):
        raise ValidationError(f"Target value must be a number, got {target_value!r}")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValidationError(f"Target value must be greater than 0, got {target_value!r}")
    return value


async def create_goal(
    session: AsyncSession,
    owner_id: str,
    goal_type: str,
    target_value: float,
    unit: str | None = None,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> Goal:
    """Replace the owner's active goal of this type with a new one.

    The new goal starts anchored to the current period with progress seeded
    from the activity logs, not zero.
    """
    spec = require_goal_type(goal_type)
    target = _validate_target(target_value)
    now = to_utc(now or datetime.now(timezone.utc))

    seeded = await aggregator.compute_progress(session, owner_id, goal_type, now, tz_name)
    goal = Goal(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        goal_type=goal_type,
        target_value=target,
        current_value=seeded,
        unit=unit or spec.unit,
        is_active=True,
        last_reset_at=to_utc(period_start(goal_type, now, tz_name)),
        created_at=now,
        updated_at=now,
    )

    try:
        replaced = await store.deactivate_active_goals(session, owner_id, goal_type, now)
        await store.insert_goal(session, goal)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConcurrentModificationConflict(
            f"Another active {goal_type} goal was created concurrently for {owner_id}"
        ) from exc

    logger.info(
        f"[GOALS] Created {goal_type} goal {goal.id} for {owner_id} "
        f"(target={target}, seeded={seeded}, replaced={replaced})"
    )
    goal.percentage = aggregator.progress_percentage(goal.current_value, goal.target_value)
    return goal


async def create_goal_from_suggestion(
    session: AsyncSession,
    owner_id: str,
    suggestion: GoalSuggestion | dict,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> Goal:
    """Adapter for the recommendation service's ``{type, target, unit}`` payload."""
    if not isinstance(suggestion, GoalSuggestion):
        suggestion = GoalSuggestion.model_validate(suggestion)
    return await create_goal(
        session,
        owner_id,
        suggestion.type,
        suggestion.target,
        unit=suggestion.unit,
        now=now,
        tz_name=tz_name,
    )


async def delete_goal(session: AsyncSession, goal_id: str, owner_id: str | None = None) -> None:
    """Permanently remove a goal. Activity logs are untouched."""
    deleted = await store.delete_goal(session, goal_id, owner_id)
    if deleted == 0:
        await session.rollback()
        raise NotFoundError(f"Goal not found: {goal_id}")
    await session.commit()
    logger.info(f"[GOALS] Deleted goal {goal_id}")


async def list_goals(
    session: AsyncSession,
    owner_id: str,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> GoalList:
    """Refresh the owner's goals, then return the active ones with percentages."""
    report = await reset.refresh_all(session, owner_id, now, tz_name)
    goals = await store.fetch_active_goals(session, owner_id)
    for goal in goals:
        goal.percentage = aggregator.progress_percentage(goal.current_value, goal.target_value)
    return GoalList(owner_id=owner_id, refreshed_at=report.refreshed_at, goals=goals)


async def seed_default_goals(
    session: AsyncSession,
    owner_id: str,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> list[Goal]:
    """Create the starter goals the owner does not have yet. Existing goals are kept."""
    existing = {g.goal_type for g in await store.fetch_active_goals(session, owner_id)}
    created: list[Goal] = []
    for goal_type in DEFAULT_GOAL_TYPES:
        if goal_type in existing:
            continue
        spec = require_goal_type(goal_type)
        created.append(
            await create_goal(session, owner_id, goal_type, spec.default_target, now=now, tz_name=tz_name)
        )
    return created


def goal_type_catalog() -> list[GoalTypeInfo]:
    return [
        GoalTypeInfo(
            goal_type=spec.goal_type,
            label=spec.label,
            unit=spec.unit,
            window=spec.window,
            default_target=spec.default_target,
        )
        for spec in list_goal_types()
    ]
