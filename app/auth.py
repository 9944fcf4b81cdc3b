"""Shared-key protection for the /goals API.

The goals API is called by the app frontend and by the refresh scheduler's
GoalsClient, which sends the key as ``X-API-Key``. ``Authorization: Bearer``
is accepted too. With GOALS_API_KEY unset every caller is let through.
"""

import secrets

from fastapi import HTTPException, Header

from app.config import settings


def _presented_key(x_api_key: str | None, authorization: str | None) -> str | None:
    if x_api_key is not None:
        return x_api_key
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


async def verify_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    authorization: str | None = Header(default=None),
) -> str:
    """FastAPI dependency guarding every goals route. Returns the accepted key."""
    expected = settings.goals_api_key
    if expected is None:
        return ""

    key = _presented_key(x_api_key, authorization)
    if key is None or not secrets.compare_digest(key, expected):
        raise HTTPException(
            status_code=401,
            detail="Goals API key missing or invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return key
