"""Run submission and leaderboard routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from mood_bubbles.api.schemas import LeaderboardEntry
from mood_bubbles.models import GameMode, RunSummary
from mood_bubbles.storage.repository import MAX_LEADERBOARD, ProfileRepository, RunRepository

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/runs", tags=["runs"])


@router.post("", status_code=201, summary="Store a finished run")
async def submit_run(summary: RunSummary):
    """Persist the run and fold it into the player's profile."""
    runs = RunRepository()
    if await runs.get(summary.run_id) is not None:
        raise HTTPException(409, f"Run {summary.run_id} already stored.")
    try:
        await runs.save(summary)
    except IntegrityError:
        # Lost a race with a concurrent submit of the same run
        logger.warning("run.duplicate", run_id=summary.run_id)
        raise HTTPException(409, f"Run {summary.run_id} already stored.") from None
    profile = await ProfileRepository().record_run(summary)
    logger.info(
        "run.stored",
        run_id=summary.run_id,
        device=summary.device_id,
        mode=summary.mode.value,
        score=summary.score,
    )
    return {
        "run_id": summary.run_id,
        "games_played": profile.games_played,
        "best_score": profile.best_score,
    }


@router.get("/top", response_model=list[LeaderboardEntry], summary="Leaderboard")
async def top_runs(
    n: int = Query(10, ge=1, description=f"Number of runs (capped at {MAX_LEADERBOARD})"),
    mode: GameMode | None = Query(None, description="Only runs in this mode"),
):
    rows = await RunRepository().top(n=n, mode=mode)
    return [
        LeaderboardEntry(
            run_id=r.run_id,
            device_id=r.device_id,
            username=r.username,
            mode=GameMode(r.mode),
            score=r.score,
            duration_ms=r.duration_ms,
            bubbles_popped=r.bubbles_popped,
            accuracy=r.accuracy,
            game_version=r.game_version,
            finished_at=r.finished_at,
        )
        for r in rows
    ]
