"""Mood tracker — smoother + classifier + per-run tally behind one object.

The tracker is the only writer of the smoothed and classified state; the
game session reads :attr:`emotion`, :attr:`smoothed` and :attr:`gaze` every
tick and tolerates them being one sampling cycle stale.
"""

from __future__ import annotations

from collections import Counter

import structlog

from mood_bubbles.affect.classifier import EmotionClassifier
from mood_bubbles.affect.models import ExpressionSample, SmoothedState
from mood_bubbles.affect.smoother import SignalSmoother
from mood_bubbles.models import Emotion

logger = structlog.get_logger(__name__)


class MoodTracker:
    """Consumes expression samples and keeps the latest classified mood."""

    def __init__(
        self,
        smoother: SignalSmoother | None = None,
        classifier: EmotionClassifier | None = None,
    ) -> None:
        self._smoother = smoother or SignalSmoother()
        self._classifier = classifier or EmotionClassifier()
        self._counts: Counter[Emotion] = Counter()
        self.gaze: tuple[float, float] | None = None

    # ── Read side ─────────────────────────────────────────────

    @property
    def emotion(self) -> Emotion:
        return self._classifier.current

    @property
    def smoothed(self) -> SmoothedState:
        return self._smoother.state

    @property
    def classifier(self) -> EmotionClassifier:
        return self._classifier

    def counts(self) -> dict[Emotion, int]:
        return {e: self._counts.get(e, 0) for e in Emotion}

    def shares(self) -> dict[Emotion, float]:
        """Fraction of sampling cycles spent in each label this run."""
        total = sum(self._counts.values())
        if total == 0:
            return {e: 0.0 for e in Emotion}
        return {e: round(self._counts.get(e, 0) / total, 3) for e in Emotion}

    # ── Write side ────────────────────────────────────────────

    def observe(self, sample: ExpressionSample | None, now: float) -> Emotion:
        """Run one sampling cycle: smooth, classify, count."""
        state = self._smoother.update(sample)
        emotion = self._classifier.classify(state, now)
        self._counts[emotion] += 1
        return emotion

    def set_gaze(self, x: float, y: float) -> None:
        self.gaze = (min(1.0, max(0.0, x)), min(1.0, max(0.0, y)))

    def reset(self) -> None:
        """Restart-time reset: neutral label, initial EMA, empty tally."""
        self._smoother.reset()
        self._classifier.reset()
        self._counts.clear()
        logger.debug("mood_tracker.reset")
