"""Headless drivers for a game session (no renderer).

Two drivers share the same wiring:

* :func:`run_headless` uses a virtual clock and finishes as fast as the CPU
  allows (CLI ``play`` and tests);
* :func:`run_realtime` runs the provider pump and the mood sampler as
  background tasks at wall-clock cadence, the way a rendered front end
  would.

An :class:`AutoPlayer` stands in for pointer input.
"""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from dataclasses import dataclass

import structlog

from mood_bubbles.affect.tracker import MoodTracker
from mood_bubbles.config import get_settings
from mood_bubbles.game.bubbles import PlayArea
from mood_bubbles.game.session import GameSession
from mood_bubbles.game.spawner import Spawner
from mood_bubbles.logger import bind_run, clear_run
from mood_bubbles.models import GameMode, RunSummary
from mood_bubbles.reporting.handlers import ReportDispatcher
from mood_bubbles.streaming.pipeline import MoodSampler, SampleChannel
from mood_bubbles.streaming.providers import BaseExpressionProvider, SyntheticMoodProvider

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Viewport:
    width: float = 800.0
    height: float = 600.0
    chrome_height: float = 56.0

    def area(self) -> PlayArea:
        return PlayArea.from_viewport(self.width, self.height, self.chrome_height)

    def rotated(self) -> Viewport:
        return Viewport(self.height, self.width, self.chrome_height)


class AutoPlayer:
    """Synthetic pointer input: taps every ``interval`` seconds.

    A tap aims at a live bubble with probability ``accuracy`` and at a
    random point otherwise.
    """

    def __init__(self, rng: random.Random, *, interval: float = 0.6, accuracy: float = 0.7) -> None:
        self._rng = rng
        self._interval = interval
        self._accuracy = accuracy
        self._next = interval

    def maybe_tap(self, session: GameSession, now: float, area: PlayArea) -> None:
        elapsed = now - session.state.start_time
        if elapsed < self._next:
            return
        self._next += self._interval
        bubbles = list(session.field)
        if bubbles and self._rng.random() < self._accuracy:
            target = self._rng.choice(bubbles)
            session.pop(target.x, target.y, touch=self._rng.random() < 0.5)
        else:
            session.pop(
                self._rng.uniform(area.left, area.right),
                self._rng.uniform(area.top, area.bottom),
            )


def build_session(
    mode: GameMode,
    *,
    duration: float | None = None,
    seed: int | None = None,
) -> tuple[GameSession, MoodTracker]:
    rng = random.Random(seed)
    tracker = MoodTracker()
    session = GameSession(mode, duration=duration, spawner=Spawner(rng), tracker=tracker)
    return session, tracker


async def run_headless(
    mode: GameMode,
    *,
    duration: float | None = None,
    fps: int | None = None,
    seed: int | None = None,
    provider: BaseExpressionProvider | None = None,
    dispatcher: ReportDispatcher | None = None,
    viewport: Viewport | None = None,
    device_id: str = "headless",
    autoplay: bool = True,
) -> RunSummary:
    """Play one full run on a virtual clock and return its summary.

    The viewport rotates halfway through the run to exercise the
    per-tick bounds reconciliation.
    """
    settings = get_settings()
    fps = fps or settings.frames_per_second
    viewport = viewport or Viewport()
    session, tracker = build_session(mode, duration=duration, seed=seed)
    rng = random.Random(None if seed is None else seed + 1)
    provider = provider or SyntheticMoodProvider(rng=rng)
    channel = SampleChannel()
    sampler = MoodSampler(tracker, channel, interval=settings.mood_sample_interval_seconds)
    player = AutoPlayer(rng) if autoplay else None

    session_id = str(uuid.uuid4())
    bind_run(mode=mode.value, device=device_id, session=session_id)

    dt = 1.0 / fps
    now = 0.0
    next_sample = 0.0
    rotated = False
    session.start(now, viewport.area())

    try:
        while True:
            if not rotated and now >= session.duration / 2:
                viewport = viewport.rotated()
                rotated = True
                logger.info("runner.viewport_rotated", width=viewport.width, height=viewport.height)
            area = viewport.area()

            if mode is GameMode.BIO and now >= next_sample:
                channel.publish(await provider.read())
                gaze = provider.gaze()
                if gaze is not None:
                    tracker.set_gaze(*gaze)
                sampler.run_cycle(now)
                next_sample += settings.mood_sample_interval_seconds

            if not session.tick(now, area):
                break
            if player is not None:
                player.maybe_tap(session, now, area)
            now += dt

        summary = session.summary(device_id, session_id=session_id)
        if dispatcher is not None:
            await dispatcher.dispatch(summary)
    finally:
        await provider.close()
        clear_run()
    return summary


async def run_realtime(
    mode: GameMode,
    *,
    duration: float | None = None,
    fps: int | None = None,
    seed: int | None = None,
    provider: BaseExpressionProvider | None = None,
    dispatcher: ReportDispatcher | None = None,
    viewport: Viewport | None = None,
    device_id: str = "realtime",
) -> RunSummary:
    """Play one run at wall-clock speed with background mood sampling."""
    settings = get_settings()
    fps = fps or settings.frames_per_second
    viewport = viewport or Viewport()
    session, tracker = build_session(mode, duration=duration, seed=seed)
    rng = random.Random(seed)
    provider = provider or SyntheticMoodProvider(rng=rng)
    channel = SampleChannel()
    sampler = MoodSampler(tracker, channel)
    player = AutoPlayer(rng)

    session_id = str(uuid.uuid4())
    bind_run(mode=mode.value, device=device_id, session=session_id)
    finished: list[RunSummary] = []

    def _on_over(s: GameSession) -> None:
        finished.append(s.summary(device_id, session_id=session_id))
        if dispatcher is not None:
            dispatcher.submit(finished[0])

    session.add_over_listener(_on_over)

    tasks: list[asyncio.Task] = []
    if mode is GameMode.BIO:
        tasks.append(asyncio.create_task(channel.pump(provider, settings.mood_sample_interval_seconds / 2)))
        tasks.append(asyncio.create_task(sampler.start()))

    area = viewport.area()
    session.start(time.monotonic(), area)
    try:
        while session.tick(time.monotonic(), area):
            gaze = provider.gaze()
            if gaze is not None:
                tracker.set_gaze(*gaze)
            player.maybe_tap(session, time.monotonic(), area)
            await asyncio.sleep(1.0 / fps)
    finally:
        channel.stop_pump()
        await sampler.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await provider.close()

    if dispatcher is not None:
        await dispatcher.drain()
    clear_run()
    return finished[0] if finished else session.summary(device_id, session_id=session_id)
