"""Goals HTTP router: lifecycle API and refresh triggers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import verify_api_key
from app.db import get_session
from app.goals import reset, service
from app.goals.errors import (
    AggregationFailure,
    ConcurrentModificationConflict,
    GoalEngineError,
    NotFoundError,
    ValidationError,
)
from app.goals.models import (
    Goal,
    GoalCreate,
    GoalList,
    GoalTypeInfo,
    OwnerRequest,
    RefreshResult,
    SuggestionCreate,
)

router = APIRouter(prefix="/goals", tags=["goals"])


def _http_error(exc: GoalEngineError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConcurrentModificationConflict):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, AggregationFailure):
        return HTTPException(
            status_code=503,
            detail={"message": str(exc), "goal_ids": exc.goal_ids},
        )
    return HTTPException(status_code=500, detail=str(exc))


def _refresh_result(report: reset.RefreshReport) -> RefreshResult:
    return RefreshResult(
        owner_id=report.owner_id,
        refreshed_at=report.refreshed_at,
        reset=report.reset,
        refreshed=report.refreshed,
        conflicts=report.conflicts,
    )


# ---------------------------------------------------------------------------
# /goals
# ---------------------------------------------------------------------------


@router.get("/types", response_model=list[GoalTypeInfo])
async def goal_types(
    _: str = Depends(verify_api_key),
) -> list[GoalTypeInfo]:
    return service.goal_type_catalog()


@router.get("", response_model=GoalList)
async def list_goals(
    owner_id: str = Query(..., description="Owner identifier"),
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> GoalList:
    try:
        return await service.list_goals(session, owner_id)
    except GoalEngineError as exc:
        raise _http_error(exc)


@router.post("", response_model=Goal, status_code=201)
async def create_goal(
    payload: GoalCreate,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> Goal:
    try:
        return await service.create_goal(
            session, payload.owner_id, payload.goal_type, payload.target_value, payload.unit
        )
    except GoalEngineError as exc:
        raise _http_error(exc)


@router.post("/from-suggestion", response_model=Goal, status_code=201)
async def create_goal_from_suggestion(
    payload: SuggestionCreate,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> Goal:
    try:
        return await service.create_goal_from_suggestion(session, payload.owner_id, payload.suggestion)
    except GoalEngineError as exc:
        raise _http_error(exc)


@router.post("/defaults", response_model=list[Goal])
async def seed_default_goals(
    payload: OwnerRequest,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> list[Goal]:
    try:
        return await service.seed_default_goals(session, payload.owner_id)
    except GoalEngineError as exc:
        raise _http_error(exc)


@router.delete("/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: str,
    owner_id: str | None = Query(default=None, description="Restrict delete to this owner"),
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> Response:
    try:
        await service.delete_goal(session, goal_id, owner_id)
    except GoalEngineError as exc:
        raise _http_error(exc)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# /goals/refresh, /goals/force-reset
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=RefreshResult)
async def refresh_goals(
    payload: OwnerRequest,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> RefreshResult:
    try:
        return _refresh_result(await reset.refresh_all(session, payload.owner_id))
    except GoalEngineError as exc:
        raise _http_error(exc)


@router.post("/force-reset", response_model=RefreshResult)
async def force_reset_goals(
    payload: OwnerRequest,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(verify_api_key),
) -> RefreshResult:
    try:
        return _refresh_result(await reset.force_reset_all(session, payload.owner_id))
    except GoalEngineError as exc:
        raise _http_error(exc)
