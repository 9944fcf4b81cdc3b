"""Table definitions.

goals: owned by the engine; mutated only by the lifecycle API and reset routine.
nutrition_logs / fitness_logs: written by the activity-logging frontend,
read-only here. Windowing uses the event-time column (consumed_at /
performed_at), never logged_at.

All timestamps are stored in UTC.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)

metadata = MetaData()

goals = Table(
    "goals",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(64), nullable=False, index=True),
    Column("goal_type", String(32), nullable=False),
    Column("target_value", Float, nullable=False),
    Column("current_value", Float, nullable=False, default=0.0),
    Column("unit", String(16), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("last_reset_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# At most one active goal per (owner, type)
Index(
    "uq_goals_active_owner_type",
    goals.c.owner_id,
    goals.c.goal_type,
    unique=True,
    postgresql_where=goals.c.is_active,
    sqlite_where=goals.c.is_active,
)

nutrition_logs = Table(
    "nutrition_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", String(64), nullable=False),
    Column("calories", Float, nullable=False, default=0.0),
    Column("protein", Float, nullable=False, default=0.0),
    Column("carbs", Float, nullable=False, default=0.0),
    Column("fats", Float, nullable=False, default=0.0),
    Column("consumed_at", DateTime(timezone=True), nullable=False),
    Column("logged_at", DateTime(timezone=True), nullable=False),
    Index("ix_nutrition_logs_owner_consumed", "owner_id", "consumed_at"),
)

fitness_logs = Table(
    "fitness_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", String(64), nullable=False),
    Column("activity_type", String(64), nullable=False),
    Column("duration_minutes", Float, nullable=False, default=0.0),
    Column("calories_burned", Float, nullable=False, default=0.0),
    Column("performed_at", DateTime(timezone=True), nullable=False),
    Column("logged_at", DateTime(timezone=True), nullable=False),
    Index("ix_fitness_logs_owner_performed", "owner_id", "performed_at"),
)
