"""Request / response models shared across API route modules."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from mood_bubbles.models import GameMode


class SetUsernameRequest(BaseModel):
    device_id: str = Field(min_length=1)
    username: str


class LeaderboardEntry(BaseModel):
    run_id: str
    device_id: str
    username: str
    mode: GameMode
    score: int
    duration_ms: int
    bubbles_popped: int
    accuracy: float
    game_version: str
    finished_at: datetime


class UsernameAvailability(BaseModel):
    username: str
    available: bool
