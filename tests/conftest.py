"""Shared pytest fixtures."""

from __future__ import annotations

import os
import random
import tempfile
from pathlib import Path

# Point the backend at a throwaway SQLite file before any settings are cached
_TMP_DIR = Path(tempfile.mkdtemp(prefix="mood-bubbles-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ.setdefault("API_SECRET_KEY", "change-me-to-a-random-secret")
os.environ.setdefault("REPORT_URL", "")

import pytest  # noqa: E402

from mood_bubbles.affect.models import ExpressionSample, SmoothedState  # noqa: E402
from mood_bubbles.affect.tracker import MoodTracker  # noqa: E402
from mood_bubbles.game.bubbles import PlayArea  # noqa: E402
from mood_bubbles.game.spawner import Spawner  # noqa: E402
from mood_bubbles.logger import setup_logging  # noqa: E402
from mood_bubbles.models import GameMode, RunSummary  # noqa: E402


@pytest.fixture
def area() -> PlayArea:
    return PlayArea(left=0.0, right=800.0, top=0.0, bottom=600.0)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def spawner(rng: random.Random) -> Spawner:
    return Spawner(rng)


@pytest.fixture
def tracker() -> MoodTracker:
    return MoodTracker()


@pytest.fixture
def happy_sample() -> ExpressionSample:
    return ExpressionSample(happy=0.9, sad=0.02, angry=0.02, neutral=0.06)


@pytest.fixture
def sad_state() -> SmoothedState:
    return SmoothedState(happy=0.0, sad=0.7, angry=0.0, neutral=0.3)


@pytest.fixture
def run_summary() -> RunSummary:
    return RunSummary(
        device_id="dev-001",
        username="alice",
        mode=GameMode.CHALLENGE,
        score=14,
        duration_ms=30000,
        bubbles_popped=17,
        accuracy=0.81,
        game_version="v10.5.2",
    )


@pytest.fixture(scope="session", autouse=True)
def _quiet_logging():
    """One logging configuration for the whole run, writing to stderr."""
    setup_logging("WARNING", json=True)
