"""Progress aggregator: current-period value for one goal type.

A pure read: repeated calls over the same logs return the same value, and the
value only grows as entries land inside the window. Any storage error or
timeout surfaces as AggregationFailure, never as zero progress.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.goals import activity_log
from app.goals.errors import AggregationFailure
from app.goals.goal_types import GoalTypeSpec, require_goal_type
from app.goals.periods import period_window

logger = logging.getLogger(__name__)


async def _query(session: AsyncSession, owner_id: str, spec: GoalTypeSpec, start: datetime, end: datetime) -> float:
    if spec.source == "nutrition":
        return await activity_log.query_nutrition_sum(session, owner_id, spec.field, start, end)
    if spec.aggregation == "count":
        return float(await activity_log.query_fitness_count(session, owner_id, start, end))
    return await activity_log.query_fitness_sum(session, owner_id, spec.field, start, end)


async def aggregate_window(
    session: AsyncSession,
    owner_id: str,
    goal_type: str,
    start: datetime,
    end_exclusive: datetime,
    timeout: float | None = None,
) -> float:
    """Aggregate the goal type's activity field over [start, end_exclusive)."""
    spec = require_goal_type(goal_type)
    limit = settings.aggregation_timeout_seconds if timeout is None else timeout
    try:
        value = await asyncio.wait_for(_query(session, owner_id, spec, start, end_exclusive), timeout=limit)
    except asyncio.TimeoutError as exc:
        raise AggregationFailure(f"Aggregation for {goal_type} timed out after {limit}s") from exc
    except SQLAlchemyError as exc:
        raise AggregationFailure(f"Aggregation for {goal_type} failed: {exc}") from exc
    return max(value, 0.0)


async def compute_progress(
    session: AsyncSession,
    owner_id: str,
    goal_type: str,
    now: datetime,
    tz_name: str | None = None,
) -> float:
    """Aggregate over the period that contains ``now``."""
    start, end = period_window(goal_type, now, tz_name)
    value = await aggregate_window(session, owner_id, goal_type, start, end)
    logger.debug(f"[GOALS] {owner_id} {goal_type} [{start.isoformat()}, {end.isoformat()}) = {value}")
    return value


def progress_percentage(current_value: float, target_value: float) -> float:
    """min(100, current / target * 100). Targets are always positive."""
    if target_value <= 0:
        return 0.0
    return min(100.0, (current_value / target_value) * 100.0)
