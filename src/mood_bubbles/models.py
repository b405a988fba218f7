"""Shared enums and Pydantic models used across the game core and backend."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# ── Enums ─────────────────────────────────────────────────────

class GameMode(str, Enum):
    """Play modes.  ``bio`` is the emotion-driven mode."""
    CLASSIC = "classic"
    CHALLENGE = "challenge"
    BIO = "bio"


class Emotion(str, Enum):
    """Discrete labels the classifier can emit."""
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    NEUTRAL = "neutral"


class BubbleKind(str, Enum):
    NORMAL = "normal"
    TRICK = "trick"  # pops subtract from the score


# ── Data transfer objects ─────────────────────────────────────

class RunSummary(BaseModel):
    """End-of-run report sent to the score/telemetry sink."""
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str = ""
    device_id: str
    username: str = ""
    mode: GameMode
    score: int = Field(ge=0)
    duration_ms: int = Field(0, ge=0)
    bubbles_popped: int = Field(0, ge=0)
    accuracy: float = Field(0.0, ge=0.0, le=1.0)
    game_version: str = ""
    emotion_counts: dict[Emotion, int] = Field(default_factory=dict)
    emotion_shares: dict[Emotion, float] = Field(default_factory=dict)
    finished_at: datetime = Field(default_factory=datetime.utcnow)


class Profile(BaseModel):
    """A player's persistent profile, keyed by device id."""
    device_id: str
    username: str = ""
    games_played: int = 0
    best_score: int = 0
    last_seen: datetime | None = None
    created_at: datetime | None = None
