"""Reset routine: keeps current_value / last_reset_at correct for an owner.

Two phases per call:
  1. read: load active goals and aggregate each one over its current period
     (stale goals: the newly started period; fresh goals: a soft refresh);
  2. write: persist each result with a compare-and-set on the previously read
     last_reset_at, then commit.

A stale goal is re-anchored to period_start(now), never to ``now`` itself, so
however many times this runs inside a period the reset happens exactly once.
A lost compare-and-set means another caller already handled the goal; it is
skipped, not retried. A failed aggregation leaves that goal untouched; the
rest are still committed and the failure is raised afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.goals import aggregator, store
from app.goals.errors import AggregationFailure
from app.goals.goal_types import get_goal_type
from app.goals.models import Goal
from app.goals.periods import is_stale, period_window, to_utc

logger = logging.getLogger(__name__)


@dataclass
class RefreshReport:
    """What one refresh pass did, by goal id."""

    owner_id: str
    refreshed_at: datetime
    reset: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class _Planned:
    goal: Goal
    value: float
    anchor: datetime
    is_reset: bool


async def _plan(
    session: AsyncSession,
    goal: Goal,
    now: datetime,
    tz_name: str | None,
    force: bool,
) -> _Planned:
    stale = force or is_stale(goal.goal_type, goal.last_reset_at, now, tz_name)
    start, end = period_window(goal.goal_type, now, tz_name)
    value = await aggregator.aggregate_window(session, goal.owner_id, goal.goal_type, start, end)
    if stale:
        return _Planned(goal=goal, value=value, anchor=start, is_reset=True)
    # Soft refresh: same period, keep the existing anchor
    return _Planned(goal=goal, value=value, anchor=goal.last_reset_at, is_reset=False)  # type: ignore[arg-type]


async def _run(
    session: AsyncSession,
    owner_id: str,
    now: datetime | None,
    tz_name: str | None,
    force: bool,
) -> RefreshReport:
    now = to_utc(now or datetime.now(timezone.utc))
    report = RefreshReport(owner_id=owner_id, refreshed_at=now)

    active = await store.fetch_active_goals(session, owner_id)
    if not active:
        return report

    planned: list[_Planned] = []
    for goal in active:
        if get_goal_type(goal.goal_type) is None:
            logger.warning(f"[RESET] Skipping goal {goal.id} with unknown type {goal.goal_type}")
            continue
        try:
            planned.append(await _plan(session, goal, now, tz_name, force))
        except AggregationFailure as exc:
            logger.error(f"[RESET] Aggregation failed for goal {goal.id} ({goal.goal_type}): {exc}")
            report.failed.append(goal.id)
            # Reads only so far; clear any aborted transaction before continuing
            await session.rollback()

    for item in planned:
        goal = item.goal
        if not item.is_reset and item.value == goal.current_value:
            report.refreshed.append(goal.id)
            continue
        written = await store.compare_and_set_progress(session, goal, item.value, item.anchor, now)
        if not written:
            logger.info(f"[RESET] Goal {goal.id} changed concurrently; skipping")
            report.conflicts.append(goal.id)
            continue
        if item.is_reset:
            logger.info(
                f"[RESET] Goal {goal.id} ({goal.goal_type}) reset to period "
                f"{item.anchor.isoformat()}: {goal.current_value} -> {item.value}"
            )
            report.reset.append(goal.id)
        else:
            report.refreshed.append(goal.id)

    await session.commit()

    if report.failed:
        raise AggregationFailure(
            f"Progress aggregation failed for {len(report.failed)} goal(s) of owner {owner_id}",
            goal_ids=list(report.failed),
        )
    return report


async def refresh_all(
    session: AsyncSession,
    owner_id: str,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> RefreshReport:
    """Reset stale goals and soft-refresh the rest. Safe to call arbitrarily often."""
    return await _run(session, owner_id, now, tz_name, force=False)


async def force_reset_all(
    session: AsyncSession,
    owner_id: str,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> RefreshReport:
    """Treat every active goal as stale and re-anchor it to the current period."""
    logger.info(f"[RESET] Forcing reset of all goals for {owner_id}")
    return await _run(session, owner_id, now, tz_name, force=True)
