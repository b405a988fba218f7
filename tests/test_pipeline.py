"""Tests for the expression sample channel and the mood sampler."""

import asyncio

import pytest

from mood_bubbles.affect.models import ExpressionSample
from mood_bubbles.affect.tracker import MoodTracker
from mood_bubbles.models import Emotion
from mood_bubbles.streaming.pipeline import MoodSampler, SampleChannel
from mood_bubbles.streaming.providers import (
    BaseExpressionProvider,
    ScriptedExpressionProvider,
    SyntheticMoodProvider,
)


def _sample(happy: float) -> ExpressionSample:
    return ExpressionSample(happy=happy, neutral=1.0 - happy)


class _BrokenProvider(BaseExpressionProvider):
    def __init__(self) -> None:
        self.calls = 0

    async def read(self) -> ExpressionSample | None:
        self.calls += 1
        raise RuntimeError("camera unplugged")


# ── Channel ──────────────────────────────────────────────────


class TestSampleChannel:
    def test_take_latest_returns_newest(self):
        channel = SampleChannel()
        channel.publish(_sample(0.1))
        channel.publish(_sample(0.2))
        channel.publish(_sample(0.3))
        assert channel.take_latest().happy == 0.3
        assert channel.pending == 0

    def test_empty_channel_yields_none(self):
        assert SampleChannel().take_latest() is None

    def test_full_channel_drops_oldest(self):
        channel = SampleChannel(maxsize=2)
        for h in (0.1, 0.2, 0.3):
            channel.publish(_sample(h))
        assert channel.pending == 2
        assert channel.take_latest().happy == 0.3

    def test_no_face_entries_pass_through(self):
        channel = SampleChannel()
        channel.publish(_sample(0.5))
        channel.publish(None)
        assert channel.take_latest() is None

    @pytest.mark.asyncio
    async def test_pump_publishes_provider_reads(self):
        channel = SampleChannel()
        provider = ScriptedExpressionProvider([_sample(0.4)])
        task = asyncio.create_task(channel.pump(provider, 0.01))
        await asyncio.sleep(0.05)
        channel.stop_pump()
        await asyncio.wait_for(task, timeout=1.0)
        assert channel.take_latest().happy == 0.4

    @pytest.mark.asyncio
    async def test_pump_survives_provider_errors(self):
        channel = SampleChannel()
        provider = _BrokenProvider()
        task = asyncio.create_task(channel.pump(provider, 0.01))
        await asyncio.sleep(0.05)
        channel.stop_pump()
        await asyncio.wait_for(task, timeout=1.0)
        assert provider.calls >= 2
        assert channel.pending == 0


# ── Providers ────────────────────────────────────────────────


class TestProviders:
    def test_scripted_requires_samples(self):
        with pytest.raises(ValueError):
            ScriptedExpressionProvider([])

    @pytest.mark.asyncio
    async def test_scripted_loops(self):
        provider = ScriptedExpressionProvider([_sample(0.1), None])
        reads = [await provider.read() for _ in range(4)]
        assert reads[1] is None and reads[3] is None
        assert reads[0].happy == reads[2].happy == 0.1

    @pytest.mark.asyncio
    async def test_scripted_holds_last_without_loop(self):
        provider = ScriptedExpressionProvider([_sample(0.1), _sample(0.2)], loop=False)
        reads = [await provider.read() for _ in range(4)]
        assert [r.happy for r in reads] == [0.1, 0.2, 0.2, 0.2]

    @pytest.mark.asyncio
    async def test_synthetic_leans_toward_mood(self):
        import random

        provider = SyntheticMoodProvider(Emotion.SAD, dropout=0.0, rng=random.Random(2))
        samples = [await provider.read() for _ in range(50)]
        assert all(s.sad > s.happy for s in samples)
        gx, gy = provider.gaze()
        assert 0.0 <= gx <= 1.0 and 0.0 <= gy <= 1.0


# ── Sampler ──────────────────────────────────────────────────


class TestMoodSampler:
    def test_cycle_consumes_latest(self):
        tracker = MoodTracker()
        channel = SampleChannel()
        sampler = MoodSampler(tracker, channel, interval=1.5)
        channel.publish(_sample(0.1))
        channel.publish(_sample(0.9))
        assert sampler.run_cycle(now=0.0) is Emotion.HAPPY
        assert sampler.cycles == 1
        assert channel.pending == 0

    def test_empty_cycle_decays(self):
        tracker = MoodTracker()
        sampler = MoodSampler(tracker, SampleChannel(), interval=1.5)
        sampler.run_cycle(now=0.0)
        assert tracker.emotion is Emotion.NEUTRAL
        assert tracker.smoothed.neutral == pytest.approx(1.0)

    def test_uses_clock_when_no_time_given(self):
        tracker = MoodTracker()
        channel = SampleChannel()
        sampler = MoodSampler(tracker, channel, interval=1.5, clock=lambda: 42.0)
        channel.publish(_sample(0.9))
        sampler.run_cycle()
        assert tracker.classifier.state.last_switch == 42.0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        tracker = MoodTracker()
        channel = SampleChannel()
        sampler = MoodSampler(tracker, channel, interval=0.01)
        channel.publish(_sample(0.9))

        task = asyncio.create_task(sampler.start())
        await asyncio.sleep(0.05)
        assert sampler.running
        await sampler.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert not sampler.running
        assert sampler.cycles >= 2
        assert tracker.counts()[Emotion.HAPPY] >= 1
