"""Goal store: async persistence primitives for the goals table.

Callers own the transaction (commit / rollback). Progress writes go through
compare_and_set_progress, a single conditional UPDATE, never a client-side
read-modify-write.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.goals.models import Goal
from app.goals.periods import to_utc
from app.goals.tables import goals


def _row_to_goal(row: Any) -> Goal:
    data = dict(row._mapping)
    for key in ("last_reset_at", "created_at", "updated_at"):
        if data.get(key) is not None:
            data[key] = to_utc(data[key])
    return Goal(**data)


async def fetch_active_goals(session: AsyncSession, owner_id: str) -> list[Goal]:
    """Active goals for an owner, newest first. Empty list when none."""
    stmt = (
        select(goals)
        .where(goals.c.owner_id == owner_id, goals.c.is_active.is_(True))
        .order_by(goals.c.created_at.desc())
    )
    result = await session.execute(stmt)
    return [_row_to_goal(r) for r in result.fetchall()]


async def fetch_goal(session: AsyncSession, goal_id: str) -> Goal | None:
    result = await session.execute(select(goals).where(goals.c.id == goal_id))
    row = result.fetchone()
    return _row_to_goal(row) if row is not None else None


async def deactivate_active_goals(
    session: AsyncSession,
    owner_id: str,
    goal_type: str,
    now: datetime,
) -> int:
    """Soft-remove every active goal of this type. Returns rows touched."""
    stmt = (
        update(goals)
        .where(
            goals.c.owner_id == owner_id,
            goals.c.goal_type == goal_type,
            goals.c.is_active.is_(True),
        )
        .values(is_active=False, updated_at=to_utc(now))
    )
    result = await session.execute(stmt)
    return result.rowcount


async def insert_goal(session: AsyncSession, goal: Goal) -> None:
    values = goal.model_dump(exclude={"percentage"})
    for key in ("last_reset_at", "created_at", "updated_at"):
        if values.get(key) is not None:
            values[key] = to_utc(values[key])
    await session.execute(insert(goals).values(**values))


async def delete_goal(session: AsyncSession, goal_id: str, owner_id: str | None = None) -> int:
    """Hard delete. Scoped to ``owner_id`` when given. Returns rows deleted."""
    stmt = delete(goals).where(goals.c.id == goal_id)
    if owner_id is not None:
        stmt = stmt.where(goals.c.owner_id == owner_id)
    result = await session.execute(stmt)
    return result.rowcount


async def compare_and_set_progress(
    session: AsyncSession,
    goal: Goal,
    current_value: float,
    last_reset_at: datetime,
    now: datetime,
) -> bool:
    """Write progress only if the row still looks the way ``goal`` saw it.

    Matches on id, is_active and the previously read last_reset_at, and
    refuses to overwrite a row updated at a later server time. Returns False
    when another writer got there first.
    """
    stmt = update(goals).where(
        goals.c.id == goal.id,
        goals.c.is_active.is_(True),
        goals.c.updated_at <= to_utc(now),
    )
    if goal.last_reset_at is None:
        stmt = stmt.where(goals.c.last_reset_at.is_(None))
    else:
        stmt = stmt.where(goals.c.last_reset_at == to_utc(goal.last_reset_at))
    stmt = stmt.values(
        current_value=current_value,
        last_reset_at=to_utc(last_reset_at),
        updated_at=to_utc(now),
    )
    result = await session.execute(stmt)
    return result.rowcount == 1
