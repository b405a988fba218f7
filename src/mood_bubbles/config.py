"""Centralised application settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _resolve_db_dir() -> Path:
    """Return (and create) the directory that holds the SQLite file."""
    d = _PROJECT_ROOT / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


_DEFAULT_DB_URL = f"sqlite+aiosqlite:///{_resolve_db_dir() / 'mood_bubbles.db'}"


class Settings(BaseSettings):
    """All runtime configuration for the game core and its backend.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in one flat namespace
    (``GAME_DURATION_SECONDS``, ``DATABASE_URL``, ...).
    """

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Game ──────────────────────────────────────────────────
    game_version: str = "v10.5.2"
    game_duration_seconds: float = 30.0
    default_mode: Literal["classic", "challenge", "bio"] = "classic"
    touch_hit_pad: float = 12.0  # extra hit radius for touch input, px
    frames_per_second: int = 60

    # ── Mood sampling ─────────────────────────────────────────
    mood_sample_interval_seconds: float = 1.5

    # ── Backend ───────────────────────────────────────────────
    database_url: str = _DEFAULT_DB_URL
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_secret_key: str = "change-me-to-a-random-secret"
    cors_origins: str = "http://127.0.0.1:5500,http://localhost:5500"

    # ── Run reporting ─────────────────────────────────────────
    report_url: str = ""  # empty → log-only reporting
    report_secret: str = ""
    report_timeout: float = 10.0

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
