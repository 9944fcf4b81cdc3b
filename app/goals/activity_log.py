"""Activity log store, read side: async aggregates over nutrition_logs and fitness_logs.

Every query filters by event time (consumed_at / performed_at) over a half-open
[start, end_exclusive) range, so a meal entered today for last night counts
toward last night's period. Empty ranges aggregate to 0.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.goals.goal_types import SOURCE_FIELDS
from app.goals.periods import to_utc
from app.goals.tables import fitness_logs, nutrition_logs


def _column(table, source: str, field: str):
    if field not in SOURCE_FIELDS[source]:
        raise ValueError(f"Unknown {source} field: {field}")
    return table.c[field]


async def query_nutrition_sum(
    session: AsyncSession,
    owner_id: str,
    field: str,
    start: datetime,
    end_exclusive: datetime,
) -> float:
    """Sum one nutrition column for entries consumed in [start, end_exclusive)."""
    col = _column(nutrition_logs, "nutrition", field)
    stmt = select(func.coalesce(func.sum(col), 0.0)).where(
        nutrition_logs.c.owner_id == owner_id,
        nutrition_logs.c.consumed_at >= to_utc(start),
        nutrition_logs.c.consumed_at < to_utc(end_exclusive),
    )
    result = await session.execute(stmt)
    return float(result.scalar_one())


async def query_fitness_count(
    session: AsyncSession,
    owner_id: str,
    start: datetime,
    end_exclusive: datetime,
) -> int:
    """Number of fitness entries performed in [start, end_exclusive)."""
    stmt = select(func.count()).select_from(fitness_logs).where(
        fitness_logs.c.owner_id == owner_id,
        fitness_logs.c.performed_at >= to_utc(start),
        fitness_logs.c.performed_at < to_utc(end_exclusive),
    )
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def query_fitness_sum(
    session: AsyncSession,
    owner_id: str,
    field: str,
    start: datetime,
    end_exclusive: datetime,
) -> float:
    """Sum one fitness column for entries performed in [start, end_exclusive)."""
    col = _column(fitness_logs, "fitness", field)
    stmt = select(func.coalesce(func.sum(col), 0.0)).where(
        fitness_logs.c.owner_id == owner_id,
        fitness_logs.c.performed_at >= to_utc(start),
        fitness_logs.c.performed_at < to_utc(end_exclusive),
    )
    result = await session.execute(stmt)
    return float(result.scalar_one())
