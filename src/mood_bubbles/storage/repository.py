"""Thin async repositories over the SQLAlchemy session."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mood_bubbles.models import GameMode, Profile, RunSummary
from mood_bubbles.storage.database import ProfileRow, RunRow, get_session_factory

MAX_LEADERBOARD = 100
MIN_USERNAME_LENGTH = 3


class UsernameTakenError(Exception):
    """Raised when a username already belongs to another device."""


class BaseRepository:
    """Shared base with session management for all repositories."""

    def __init__(self, session: AsyncSession | None = None) -> None:
        self._external_session = session

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._external_session is not None:
            yield self._external_session
            return
        async with get_session_factory()() as session:
            yield session


class RunRepository(BaseRepository):
    """Append-only store of finished runs plus the leaderboard query."""

    async def save(self, summary: RunSummary) -> None:
        row = RunRow(
            run_id=summary.run_id,
            session_id=summary.session_id,
            device_id=summary.device_id,
            username=summary.username,
            mode=summary.mode.value,
            score=summary.score,
            duration_ms=summary.duration_ms,
            bubbles_popped=summary.bubbles_popped,
            accuracy=summary.accuracy,
            game_version=summary.game_version,
            emotion_counts_json=json.dumps({k.value: v for k, v in summary.emotion_counts.items()}),
            emotion_shares_json=json.dumps({k.value: v for k, v in summary.emotion_shares.items()}),
            finished_at=summary.finished_at,
        )
        async with self._session() as session:
            session.add(row)
            await session.commit()

    async def get(self, run_id: str) -> RunRow | None:
        async with self._session() as session:
            return await session.get(RunRow, run_id)

    async def top(self, n: int = 10, mode: GameMode | None = None) -> Sequence[RunRow]:
        """Highest-scoring runs, optionally for one mode (``n`` capped at 100)."""
        n = max(1, min(n, MAX_LEADERBOARD))
        stmt = select(RunRow).order_by(RunRow.score.desc(), RunRow.finished_at.asc()).limit(n)
        if mode is not None:
            stmt = stmt.where(RunRow.mode == mode.value)
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()


class ProfileRepository(BaseRepository):
    """Player profiles: username claims and per-run aggregates."""

    async def get(self, device_id: str) -> ProfileRow | None:
        async with self._session() as session:
            return await session.get(ProfileRow, device_id)

    async def find_by_username(self, username: str) -> ProfileRow | None:
        stmt = select(ProfileRow).where(ProfileRow.username == username).limit(1)
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def set_username(self, device_id: str, username: str) -> ProfileRow:
        """Claim ``username`` for ``device_id``, creating the profile if needed."""
        username = username.strip()
        async with self._session() as session:
            taken = (
                await session.execute(select(ProfileRow).where(ProfileRow.username == username).limit(1))
            ).scalars().first()
            if taken is not None and taken.device_id != device_id:
                raise UsernameTakenError(username)

            now = datetime.utcnow()
            row = await session.get(ProfileRow, device_id)
            if row is None:
                row = ProfileRow(
                    device_id=device_id,
                    username=username,
                    games_played=0,
                    best_score=0,
                    last_seen=now,
                    created_at=now,
                )
                session.add(row)
            else:
                row.username = username
                row.last_seen = now
            await session.commit()
            return row

    async def record_run(self, summary: RunSummary) -> ProfileRow:
        """Count a finished run: games played +1, best score kept as max."""
        async with self._session() as session:
            now = datetime.utcnow()
            row = await session.get(ProfileRow, summary.device_id)
            if row is None:
                row = ProfileRow(
                    device_id=summary.device_id,
                    username=summary.username,
                    games_played=1,
                    best_score=summary.score,
                    last_seen=now,
                    created_at=now,
                )
                session.add(row)
            else:
                row.games_played = (row.games_played or 0) + 1
                row.best_score = max(row.best_score or 0, summary.score)
                row.username = row.username or summary.username
                row.last_seen = now
            await session.commit()
            return row


def profile_from_row(row: ProfileRow) -> Profile:
    return Profile(
        device_id=row.device_id,
        username=row.username,
        games_played=row.games_played,
        best_score=row.best_score,
        last_seen=row.last_seen,
        created_at=row.created_at,
    )
