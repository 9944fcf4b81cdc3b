from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import settings
from app.db import create_tables
from app.goals.router import router as goals_router
from app.logging_setup import setup_logging


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    if settings.create_tables_on_startup:
        await create_tables()
    yield


app = FastAPI(title="Goal Engine", version="0.1.0", lifespan=lifespan)
app.include_router(goals_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "goals": {
            "list": "/goals?owner_id={owner_id}",
            "create": "/goals",
            "from_suggestion": "/goals/from-suggestion",
            "defaults": "/goals/defaults",
            "delete": "/goals/{goal_id}",
            "refresh": "/goals/refresh",
            "force_reset": "/goals/force-reset",
            "types": "/goals/types",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
