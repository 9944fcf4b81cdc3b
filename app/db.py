"""Async database access for the goal engine.

The goals table and the activity logs it aggregates live in the same
database. Production runs on postgres through asyncpg; tests point the
session dependency at SQLite.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.goals.tables import metadata

_ASYNC_DRIVER_PREFIXES = (
    ("postgres://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
)


def async_database_url(url: str) -> str:
    """Point plain postgres URLs (as hosting providers hand them out) at asyncpg."""
    for prefix, replacement in _ASYNC_DRIVER_PREFIXES:
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


engine = create_async_engine(async_database_url(settings.database_url), pool_pre_ping=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:  # type: ignore[misc]
    """Request-scoped session. Goal services commit or roll back themselves."""
    async with async_session() as session:
        yield session


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create goal and activity-log tables if missing (dev / tests only)."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(metadata.create_all)
