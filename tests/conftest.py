"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db import create_tables, get_session
from app.goals import store
from app.goals.models import Goal
from app.goals.tables import fitness_logs, nutrition_logs
from app.main import app

OWNER = "user-1"

# Sunday 2026-02-15 starts the week; "today" is Wednesday 2026-02-18 (UTC)
WEEK_START = datetime(2026, 2, 15, tzinfo=timezone.utc)
TODAY = datetime(2026, 2, 18, tzinfo=timezone.utc)
NOW = TODAY + timedelta(hours=10)


# ---------------------------------------------------------------------------
# Real SQLite database per test (aiosqlite), so the SQL actually runs
# ---------------------------------------------------------------------------

@pytest.fixture()
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'goals.db'}")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def session(session_factory):
    async with session_factory() as sess:
        yield sess


@pytest.fixture()
def override_session(session_factory):
    """Override the FastAPI dependency so the app uses the test database."""
    async def _override():
        async with session_factory() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override
    yield session_factory
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_session):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------

async def add_meal(
    session: AsyncSession,
    consumed_at: datetime,
    calories: float = 0.0,
    protein: float = 0.0,
    carbs: float = 0.0,
    fats: float = 0.0,
    owner_id: str = OWNER,
    logged_at: datetime | None = None,
) -> None:
    """Insert a nutrition entry (UTC) and commit."""
    await session.execute(
        insert(nutrition_logs).values(
            owner_id=owner_id,
            calories=calories,
            protein=protein,
            carbs=carbs,
            fats=fats,
            consumed_at=consumed_at.astimezone(timezone.utc),
            logged_at=(logged_at or consumed_at).astimezone(timezone.utc),
        )
    )
    await session.commit()


async def add_workout(
    session: AsyncSession,
    performed_at: datetime,
    activity_type: str = "running",
    duration_minutes: float = 30.0,
    calories_burned: float = 250.0,
    owner_id: str = OWNER,
    logged_at: datetime | None = None,
) -> None:
    """Insert a fitness entry (UTC) and commit."""
    await session.execute(
        insert(fitness_logs).values(
            owner_id=owner_id,
            activity_type=activity_type,
            duration_minutes=duration_minutes,
            calories_burned=calories_burned,
            performed_at=performed_at.astimezone(timezone.utc),
            logged_at=(logged_at or performed_at).astimezone(timezone.utc),
        )
    )
    await session.commit()


async def add_goal(
    session: AsyncSession,
    goal_type: str = "daily_calories",
    target_value: float = 2000.0,
    current_value: float = 0.0,
    last_reset_at: datetime | None = None,
    owner_id: str = OWNER,
    goal_id: str | None = None,
    unit: str = "calories",
    created_at: datetime | None = None,
) -> Goal:
    """Insert an active goal directly, bypassing the lifecycle API."""
    created = created_at or (last_reset_at or TODAY - timedelta(days=30))
    goal = Goal(
        id=goal_id or f"goal-{goal_type}",
        owner_id=owner_id,
        goal_type=goal_type,
        target_value=target_value,
        current_value=current_value,
        unit=unit,
        is_active=True,
        last_reset_at=last_reset_at,
        created_at=created,
        updated_at=created,
    )
    await store.insert_goal(session, goal)
    await session.commit()
    return goal
