"""Async HTTP client for the goals API, used by the refresh scheduler."""

from __future__ import annotations

import logging

import httpx

from app.config import settings
from app.goals.models import GoalList, RefreshResult

logger = logging.getLogger(__name__)


class GoalsClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Every call is bounded by ``timeout``; transport errors and non-2xx
    responses propagate as httpx exceptions for the caller to handle.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"X-API-Key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.goals_api_url,
            headers=headers,
            timeout=settings.client_timeout_seconds if timeout is None else timeout,
            transport=transport,
        )

    async def list_goals(self, owner_id: str) -> GoalList:
        resp = await self._client.get("/goals", params={"owner_id": owner_id})
        resp.raise_for_status()
        return GoalList.model_validate(resp.json())

    async def refresh(self, owner_id: str) -> RefreshResult:
        resp = await self._client.post("/goals/refresh", json={"owner_id": owner_id})
        resp.raise_for_status()
        return RefreshResult.model_validate(resp.json())

    async def force_reset(self, owner_id: str) -> RefreshResult:
        resp = await self._client.post("/goals/force-reset", json={"owner_id": owner_id})
        resp.raise_for_status()
        return RefreshResult.model_validate(resp.json())

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GoalsClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
