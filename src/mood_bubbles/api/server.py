"""FastAPI application — run storage, leaderboard and player profiles.

This module wires together:
- CORS + shared-secret middleware (what the game's forwarding proxy did)
- Run submission and leaderboard queries
- Player profile / username management
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mood_bubbles import __version__
from mood_bubbles.api.middleware import setup_middleware
from mood_bubbles.api.routes.profiles import router as profiles_router
from mood_bubbles.api.routes.runs import router as runs_router
from mood_bubbles.config import get_settings
from mood_bubbles.storage.database import dispose_engine, init_db

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    await init_db()
    logger.info("server.db_ready")
    logger.info("server.started", port=get_settings().api_port)

    yield

    await dispose_engine()
    logger.info("server.stopped")


app = FastAPI(
    title="Mood Bubbles API",
    description="Runs, leaderboard and player profiles for the mood bubbles game.",
    version=__version__,
    lifespan=lifespan,
)

setup_middleware(app)

app.include_router(runs_router)
app.include_router(profiles_router)


@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok", "version": __version__, "game_version": get_settings().game_version}
