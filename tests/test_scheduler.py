"""Tests for the client refresh scheduler and the goals HTTP client."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest
from httpx import ASGITransport

from app.config import settings
from app.goals.client import GoalsClient
from app.goals.models import Goal, GoalList, RefreshResult
from app.goals.scheduler import RefreshScheduler
from app.main import app
from tests.conftest import NOW, OWNER, TODAY, FakeClock


def _goal(last_reset_at=TODAY, current_value=0.0) -> Goal:
    return Goal(
        id="g1",
        owner_id=OWNER,
        goal_type="daily_calories",
        target_value=2000,
        current_value=current_value,
        unit="calories",
        last_reset_at=last_reset_at,
        created_at=TODAY,
        updated_at=TODAY,
    )


class FakeGoalsAPI:
    """In-memory stand-in for GoalsClient; each snapshot carries a later server time."""

    def __init__(self, goals=None):
        self.goals = goals if goals is not None else [_goal()]
        self.server_time = NOW
        self.list_calls = 0
        self.force_calls = 0
        self.fail_with: Exception | None = None

    async def list_goals(self, owner_id: str) -> GoalList:
        self.list_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.server_time += timedelta(seconds=1)
        return GoalList(owner_id=owner_id, refreshed_at=self.server_time, goals=self.goals)

    async def force_reset(self, owner_id: str) -> RefreshResult:
        self.force_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return RefreshResult(owner_id=owner_id, refreshed_at=self.server_time, reset=["g1"])


@pytest.fixture()
def api():
    return FakeGoalsAPI()


@pytest.fixture()
def scheduler(api, clock):
    return RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC")


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

class TestTriggers:
    async def test_on_load_always_refreshes(self, scheduler, api):
        assert await scheduler.on_load() is True
        assert api.list_calls == 1
        assert [g.id for g in scheduler.goals] == ["g1"]
        assert scheduler.refresh_error is None

    async def test_tick_before_first_load_refreshes(self, scheduler, api):
        assert await scheduler.tick() is True
        assert api.list_calls == 1

    async def test_tick_within_interval_is_noop(self, scheduler, api, clock):
        await scheduler.on_load()
        clock.advance(seconds=30)
        assert await scheduler.tick() is False
        assert api.list_calls == 1

    async def test_tick_after_interval(self, scheduler, api, clock):
        await scheduler.on_load()
        clock.advance(seconds=60)
        assert await scheduler.tick() is True
        assert api.list_calls == 2

    async def test_tick_after_period_boundary(self, api):
        clock = FakeClock(TODAY + timedelta(hours=23, minutes=59))
        scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=3600, tz_name="UTC")
        await scheduler.on_load()

        clock.advance(minutes=2)
        assert scheduler.stale_goals() != []
        assert await scheduler.tick() is True
        assert api.list_calls == 2

    async def test_activity_logged_refreshes_immediately(self, scheduler, api, clock):
        await scheduler.on_load()
        clock.advance(seconds=1)
        api.goals = [_goal(current_value=650)]
        assert await scheduler.on_activity_logged() is True
        assert scheduler.goals[0].current_value == 650.0

    async def test_manual_refresh_forces_reset(self, scheduler, api):
        assert await scheduler.manual_refresh() is True
        assert api.force_calls == 1
        assert api.list_calls == 1


# ---------------------------------------------------------------------------
# Failure & ordering
# ---------------------------------------------------------------------------

class TestFailures:
    async def test_failure_keeps_last_known_goals(self, scheduler, api):
        await scheduler.on_load()
        api.fail_with = httpx.ConnectError("server unreachable")

        assert await scheduler.on_activity_logged() is False
        assert [g.id for g in scheduler.goals] == ["g1"]
        assert "server unreachable" in scheduler.refresh_error

    async def test_next_success_clears_error(self, scheduler, api, clock):
        api.fail_with = httpx.ReadTimeout("slow")
        await scheduler.on_load()
        assert scheduler.refresh_error is not None

        api.fail_with = None
        assert await scheduler.tick() is True
        assert scheduler.refresh_error is None

    async def test_manual_refresh_failure(self, scheduler, api):
        api.fail_with = httpx.ConnectError("down")
        assert await scheduler.manual_refresh() is False
        assert api.list_calls == 0
        assert scheduler.refresh_error == "down"

    async def test_superseded_snapshot_discarded(self, scheduler):
        newer = GoalList(owner_id=OWNER, refreshed_at=NOW + timedelta(seconds=10), goals=[_goal(current_value=900)])
        older = GoalList(owner_id=OWNER, refreshed_at=NOW + timedelta(seconds=5), goals=[_goal(current_value=100)])

        assert scheduler.apply(newer) is True
        assert scheduler.apply(older) is False
        assert scheduler.goals[0].current_value == 900.0
        assert scheduler.last_refreshed_at == newer.refreshed_at


# ---------------------------------------------------------------------------
# Advisory checks
# ---------------------------------------------------------------------------

class TestAdvisory:
    async def test_stale_goals_does_not_mutate_cache(self, scheduler, clock):
        await scheduler.on_load()
        clock.advance(days=1)
        stale = scheduler.stale_goals()
        assert [g.id for g in stale] == ["g1"]
        assert scheduler.goals[0].last_reset_at == TODAY

    def test_needs_refresh_without_snapshot(self, scheduler):
        assert scheduler.needs_refresh() is True


# ---------------------------------------------------------------------------
# run loop
# ---------------------------------------------------------------------------

class TestRunLoop:
    async def test_run_ticks_until_stopped(self, api, clock):
        stop = asyncio.Event()
        sleeps = []

        async def _sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds=seconds)
            if len(sleeps) == 3:
                stop.set()

        scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC", sleep=_sleep)
        await scheduler.run(stop)

        assert sleeps == [60, 60, 60]
        assert api.list_calls == 3


# ---------------------------------------------------------------------------
# GoalsClient against the real app
# ---------------------------------------------------------------------------

class TestGoalsClient:
    async def test_scheduler_end_to_end(self, override_session):
        transport = ASGITransport(app=app)
        async with GoalsClient(base_url="http://test", transport=transport) as api:
            await api._client.post(
                "/goals", json={"owner_id": OWNER, "goal_type": "weekly_workouts", "target_value": 4}
            )
            scheduler = RefreshScheduler(api, OWNER, interval_seconds=60)

            assert await scheduler.on_load() is True
            assert [g.goal_type for g in scheduler.goals] == ["weekly_workouts"]

            assert await scheduler.manual_refresh() is True
            assert scheduler.refresh_error is None

    async def test_refresh_call(self, override_session):
        transport = ASGITransport(app=app)
        async with GoalsClient(base_url="http://test", transport=transport) as api:
            result = await api.refresh(OWNER)
        assert result.owner_id == OWNER
        assert result.reset == []

    async def test_http_error_propagates(self, override_session, monkeypatch):
        monkeypatch.setattr(settings, "goals_api_key", "secret")
        transport = ASGITransport(app=app)
        async with GoalsClient(base_url="http://test", transport=transport) as api:
            with pytest.raises(httpx.HTTPStatusError):
                await api.list_goals(OWNER)

    async def test_for_owner_builds_client_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "goals_api_url", "http://goals.internal:8000")
        scheduler = RefreshScheduler.for_owner(OWNER, api_key="secret", interval_seconds=30)
        try:
            assert isinstance(scheduler.client, GoalsClient)
            base_url = scheduler.client._client.base_url
            assert (base_url.host, base_url.port) == ("goals.internal", 8000)
            assert scheduler.client._client.headers["X-API-Key"] == "secret"
            assert scheduler.interval_seconds == 30
        finally:
            await scheduler.client.aclose()


# ---------------------------------------------------------------------------
# Goal types this client does not know
# ---------------------------------------------------------------------------

def _legacy_goal(last_reset_at) -> Goal:
    return Goal(
        id="legacy",
        owner_id=OWNER,
        goal_type="target_weight",
        target_value=80,
        unit="kg",
        last_reset_at=last_reset_at,
        created_at=TODAY,
        updated_at=TODAY,
    )


class TestUnknownGoalTypes:
    @pytest.mark.parametrize("last_reset_at", [TODAY, None])
    async def test_tick_respects_interval(self, clock, last_reset_at):
        api = FakeGoalsAPI(goals=[_goal(), _legacy_goal(last_reset_at)])
        scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC")
        await scheduler.on_load()

        clock.advance(seconds=5)
        assert scheduler.stale_goals() == []
        assert await scheduler.tick() is False
        assert api.list_calls == 1

    async def test_run_keeps_going(self, clock):
        api = FakeGoalsAPI(goals=[_legacy_goal(TODAY)])
        stop = asyncio.Event()
        sleeps = []

        async def _sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds=seconds)
            if len(sleeps) == 2:
                stop.set()

        scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC", sleep=_sleep)
        await scheduler.run(stop)

        assert api.list_calls == 2
        assert [g.goal_type for g in scheduler.goals] == ["target_weight"]


# ---------------------------------------------------------------------------
# Malformed 2xx responses
# ---------------------------------------------------------------------------

def _mock_client(handler) -> GoalsClient:
    return GoalsClient(base_url="http://test", transport=httpx.MockTransport(handler))


class TestMalformedResponses:
    async def test_non_json_body_keeps_cached_goals(self, clock):
        responses = iter([
            httpx.Response(200, json={
                "owner_id": OWNER,
                "refreshed_at": NOW.isoformat(),
                "goals": [_goal().model_dump(mode="json")],
            }),
            httpx.Response(200, text="<html>proxy</html>"),
        ])
        async with _mock_client(lambda request: next(responses)) as api:
            scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC")
            assert await scheduler.on_load() is True

            assert await scheduler.on_activity_logged() is False
            assert [g.id for g in scheduler.goals] == ["g1"]
            assert scheduler.refresh_error

    async def test_wrong_shape_on_load(self, clock):
        async with _mock_client(lambda request: httpx.Response(200, json={"status": "ok"})) as api:
            scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC")
            assert await scheduler.on_load() is False
            assert scheduler.goals == []
            assert scheduler.refresh_error

    async def test_manual_refresh_with_non_json_body(self, clock):
        async with _mock_client(lambda request: httpx.Response(200, text="<html>login</html>")) as api:
            scheduler = RefreshScheduler(api, OWNER, clock=clock, interval_seconds=60, tz_name="UTC")
            assert await scheduler.manual_refresh() is False
            assert scheduler.refresh_error
