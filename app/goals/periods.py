"""Period calculator: pure functions, no I/O.

Daily goals run from local midnight to the next local midnight; weekly goals
from local midnight of the configured week-start day (Sunday by default).
Boundaries are computed on the local calendar, so a DST day is 23 or 25 hours.
The server's ``default_tz`` is authoritative; clients use the same functions
only as an advisory hint.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.config import settings
from app.goals.goal_types import require_goal_type


def _tz(tz_name: str | None) -> ZoneInfo:
    return ZoneInfo(tz_name or settings.default_tz)


def to_utc(dt: datetime) -> datetime:
    """Aware UTC datetime. Naive input is taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    """First instant whose local date is ``day``.

    Midnight can be skipped or repeated by a DST shift, so both folds are
    tried and the earliest one that really falls on ``day`` wins.
    """
    candidates = []
    for fold in (0, 1):
        midnight = datetime.combine(day, time.min, tzinfo=tz).replace(fold=fold)
        if to_utc(midnight).astimezone(tz).date() == day:
            candidates.append(midnight)
    if not candidates:
        return datetime.combine(day, time.min, tzinfo=tz)
    return min(candidates, key=to_utc)


def _first_day(goal_type: str, local_day: date, week_start_day: int) -> date:
    spec = require_goal_type(goal_type)
    if not spec.is_weekly:
        return local_day
    offset = (local_day.weekday() - week_start_day) % 7
    return local_day - timedelta(days=offset)


def period_start(
    goal_type: str,
    now: datetime,
    tz_name: str | None = None,
    week_start_day: int | None = None,
) -> datetime:
    """Start of the period containing ``now``, as an aware local datetime."""
    tz = _tz(tz_name)
    wsd = settings.week_start_day if week_start_day is None else week_start_day
    local_day = to_utc(now).astimezone(tz).date()
    return _local_midnight(_first_day(goal_type, local_day, wsd), tz)


def period_window(
    goal_type: str,
    now: datetime,
    tz_name: str | None = None,
    week_start_day: int | None = None,
) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` window of the period containing ``now``."""
    start = period_start(goal_type, now, tz_name, week_start_day)
    days = 7 if require_goal_type(goal_type).is_weekly else 1
    end = _local_midnight(start.date() + timedelta(days=days), start.tzinfo)  # type: ignore[arg-type]
    return start, end


def is_stale(
    goal_type: str,
    last_reset_at: datetime | None,
    now: datetime,
    tz_name: str | None = None,
    week_start_day: int | None = None,
) -> bool:
    """True when ``last_reset_at`` predates the current period (or is missing)."""
    if last_reset_at is None:
        return True
    return to_utc(last_reset_at) < period_start(goal_type, now, tz_name, week_start_day)
