"""
Client refresh scheduler.

Decides when a long-lived client session asks the server to refresh goals:
on load, after new activity is logged, on a fixed interval, and on a manual
refresh. It only bounds how stale the displayed progress can get; the server
re-checks staleness on every refresh, so a missed trigger never breaks
correctness. The local staleness check is advisory and never mutates
cached progress.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

import httpx
import pydantic

from app.config import settings
from app.goals.client import GoalsClient
from app.goals.goal_types import get_goal_type
from app.goals.models import Goal, GoalList, RefreshResult
from app.goals.periods import is_stale

logger = logging.getLogger(__name__)

# Transport failures, timeouts, and 2xx bodies that are not a valid goals payload
REFRESH_ERRORS = (httpx.HTTPError, asyncio.TimeoutError, ValueError, pydantic.ValidationError)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class GoalsAPI(Protocol):
    async def list_goals(self, owner_id: str) -> GoalList: ...

    async def force_reset(self, owner_id: str) -> RefreshResult: ...


class RefreshScheduler:
    """
    Drives goal refreshes for one owner.

    Holds the last goal snapshot the server returned. A snapshot is applied
    only if its server ``refreshed_at`` is newer than the one held, so a slow
    response that lands after a newer one is discarded.

    Failures never raise: the cached goals stay in place, ``refresh_error``
    is set, and the next trigger retries.
    """

    def __init__(
        self,
        client: GoalsAPI,
        owner_id: str,
        clock: Clock | None = None,
        interval_seconds: float | None = None,
        tz_name: str | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            client: Goals API client (GoalsClient or a test double)
            owner_id: Owner whose goals are refreshed
            clock: Time source (defaults to SystemClock)
            interval_seconds: Periodic check interval (default from settings)
            tz_name: Time zone for the advisory staleness check
            sleep: Awaitable sleep used by run() (defaults to asyncio.sleep)
        """
        self.client = client
        self.owner_id = owner_id
        self.clock = clock or SystemClock()
        self.interval_seconds = (
            settings.refresh_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.tz_name = tz_name
        self._sleep = sleep or asyncio.sleep

        self.goals: list[Goal] = []
        self.last_refreshed_at: datetime | None = None  # server time of held snapshot
        self.last_success_at: datetime | None = None  # client time of last good refresh
        self.refresh_error: str | None = None

    @classmethod
    def for_owner(cls, owner_id: str, api_key: str | None = None, **kwargs) -> RefreshScheduler:
        """Scheduler talking to ``settings.goals_api_url`` through a GoalsClient."""
        return cls(GoalsClient(api_key=api_key or settings.goals_api_key), owner_id, **kwargs)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def on_load(self) -> bool:
        """Initial load: always refresh."""
        return await self._refresh("load")

    async def on_activity_logged(self) -> bool:
        """A meal or workout was recorded: pick up the new entry right away."""
        return await self._refresh("activity")

    async def tick(self) -> bool:
        """
        Periodic check.

        Returns:
            True if a refresh ran and its result was applied
        """
        if not self.needs_refresh():
            return False
        return await self._refresh("interval")

    async def manual_refresh(self) -> bool:
        """User-triggered: force the server to re-anchor every goal, then reload."""
        try:
            await self.client.force_reset(self.owner_id)
        except REFRESH_ERRORS as e:
            self._record_failure("manual", e)
            return False
        return await self._refresh("manual")

    async def run(self, stop: asyncio.Event) -> None:
        """Check every ``interval_seconds`` until ``stop`` is set."""
        logger.info(
            f"[SCHEDULER] Started for {self.owner_id}, interval={self.interval_seconds}s"
        )
        while not stop.is_set():
            await self.tick()
            await self._sleep(self.interval_seconds)
        logger.info(f"[SCHEDULER] Stopped for {self.owner_id}")

    # ------------------------------------------------------------------
    # Advisory checks
    # ------------------------------------------------------------------

    def stale_goals(self) -> list[Goal]:
        """Cached goals whose period appears to have ended (client-side hint only).

        Goals of a type this client does not know have no period and are
        never reported stale.
        """
        now = self.clock.now()
        return [
            g for g in self.goals
            if get_goal_type(g.goal_type) is not None
            and is_stale(g.goal_type, g.last_reset_at, now, self.tz_name)
        ]

    def needs_refresh(self) -> bool:
        if self.last_success_at is None:
            return True
        if self.stale_goals():
            return True
        elapsed = (self.clock.now() - self.last_success_at).total_seconds()
        return elapsed >= self.interval_seconds

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _refresh(self, trigger: str) -> bool:
        try:
            snapshot = await self.client.list_goals(self.owner_id)
        except REFRESH_ERRORS as e:
            self._record_failure(trigger, e)
            return False
        return self.apply(snapshot)

    def apply(self, snapshot: GoalList) -> bool:
        """Apply a server snapshot unless a newer one is already held."""
        if self.last_refreshed_at is not None and snapshot.refreshed_at <= self.last_refreshed_at:
            logger.debug(
                f"[SCHEDULER] Discarding superseded snapshot from "
                f"{snapshot.refreshed_at.isoformat()}"
            )
            return False
        self.goals = list(snapshot.goals)
        self.last_refreshed_at = snapshot.refreshed_at
        self.last_success_at = self.clock.now()
        self.refresh_error = None
        return True

    def _record_failure(self, trigger: str, error: Exception) -> None:
        self.refresh_error = str(error) or error.__class__.__name__
        logger.warning(
            f"[SCHEDULER] {trigger} refresh failed for {self.owner_id}, "
            f"keeping last known goals: {self.refresh_error}"
        )
