"""Async sample channel connecting expression providers → smoother/classifier.

The provider pushes samples at its own cadence; the sampler consumes only
the latest one per classification cycle.  Delivery cadence and
classification cadence are therefore independent, and a slow provider never
blocks the render/simulation tick.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import structlog

from mood_bubbles.affect.models import ExpressionSample
from mood_bubbles.affect.tracker import MoodTracker
from mood_bubbles.config import get_settings
from mood_bubbles.models import Emotion
from mood_bubbles.streaming.providers import BaseExpressionProvider

logger = structlog.get_logger(__name__)


class SampleChannel:
    """Bounded in-process queue of expression samples.

    ``None`` entries mean "provider looked, no face".  When the queue is full
    the oldest entry is dropped: only the freshest sample matters.
    """

    def __init__(self, maxsize: int = 8) -> None:
        self._queue: asyncio.Queue[ExpressionSample | None] = asyncio.Queue(maxsize=maxsize)
        self._pumping = False

    # ── Producer side ─────────────────────────────────────────

    def publish(self, sample: ExpressionSample | None) -> None:
        """Enqueue a sample without blocking, evicting the oldest if full."""
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(sample)

    async def pump(self, provider: BaseExpressionProvider, interval: float) -> None:
        """Read ``provider`` every ``interval`` seconds until :meth:`stop_pump`."""
        self._pumping = True
        logger.info("sample_channel.pump_started", provider=type(provider).__name__, interval=interval)
        while self._pumping:
            try:
                self.publish(await provider.read())
            except Exception as exc:
                logger.error("sample_channel.provider_error", provider=type(provider).__name__, error=str(exc))
            await asyncio.sleep(interval)
        logger.info("sample_channel.pump_stopped")

    def stop_pump(self) -> None:
        self._pumping = False

    # ── Consumer side ─────────────────────────────────────────

    def take_latest(self) -> ExpressionSample | None:
        """Drain the queue and return the newest entry (``None`` if empty)."""
        latest: ExpressionSample | None = None
        while not self._queue.empty():
            latest = self._queue.get_nowait()
        return latest

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class MoodSampler:
    """Runs the classification cycle at a fixed interval.

    Parameters
    ----------
    tracker : MoodTracker
        Smoother + classifier that receives one sample per cycle.
    channel : SampleChannel
        Where the provider's samples arrive.
    interval : float | None
        Seconds between cycles; defaults to ``mood_sample_interval_seconds``.
    clock : Callable[[], float]
        Time source in seconds, passed to the classifier.
    """

    def __init__(
        self,
        tracker: MoodTracker,
        channel: SampleChannel,
        *,
        interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tracker = tracker
        self._channel = channel
        self._interval = interval if interval is not None else get_settings().mood_sample_interval_seconds
        self._clock = clock
        self._running = False
        self.cycles = 0

    def run_cycle(self, now: float | None = None) -> Emotion:
        """Consume the latest sample and classify once."""
        now = self._clock() if now is None else now
        emotion = self._tracker.observe(self._channel.take_latest(), now)
        self.cycles += 1
        return emotion

    async def start(self) -> None:
        """Start the sampling loop (run as a background task)."""
        self._running = True
        logger.info("mood_sampler.started", interval=self._interval)
        while self._running:
            self.run_cycle()
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        """Stop sampling.  Bubble state keeps the last-known mood."""
        self._running = False
        logger.info("mood_sampler.stopped", cycles=self.cycles)

    @property
    def running(self) -> bool:
        return self._running
