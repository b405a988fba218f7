"""Data models for the affect subsystem.

These models represent:
- Raw per-sample facial-expression scores delivered by the provider
- The smoothed (EMA) state vector the classifier reads
- The classifier's own hysteresis state
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel, Field

from mood_bubbles.models import Emotion

# Added to share denominators so an all-zero state never divides by zero
SHARE_EPSILON = 1e-6


# ── Raw input ─────────────────────────────────────────────────


class ExpressionSample(BaseModel):
    """One detector reading: expression category → score in [0, 1].

    ``neutral`` is optional; when absent the smoother derives it from the
    three tracked non-neutral categories.  The remaining categories are
    accepted for completeness but do not drive the classifier.
    """

    happy: float = Field(0.0, ge=0.0, le=1.0)
    sad: float = Field(0.0, ge=0.0, le=1.0)
    angry: float = Field(0.0, ge=0.0, le=1.0)
    neutral: float | None = Field(None, ge=0.0, le=1.0)
    disgusted: float | None = Field(None, ge=0.0, le=1.0)
    fearful: float | None = Field(None, ge=0.0, le=1.0)
    surprised: float | None = Field(None, ge=0.0, le=1.0)

    @classmethod
    def from_scores(cls, scores: Mapping[str, Any]) -> ExpressionSample:
        """Build a sample from a detector's raw score dict.

        Unknown keys are dropped, non-numeric or non-finite values are
        ignored and everything else is clamped into [0, 1].
        """
        clean: dict[str, float] = {}
        for name in cls.model_fields:
            value = scores.get(name)
            if value is None:
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(number):
                clean[name] = min(1.0, max(0.0, number))
        return cls(**clean)


# ── Smoothed state ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class SmoothedState:
    """Exponentially smoothed expression scores for the four tracked labels."""

    happy: float = 0.0
    sad: float = 0.0
    angry: float = 0.0
    neutral: float = 1.0

    def value(self, emotion: Emotion) -> float:
        return getattr(self, emotion.value)

    def as_dict(self) -> dict[Emotion, float]:
        return {e: self.value(e) for e in Emotion}

    def shares(self) -> dict[Emotion, float]:
        """Normalise the four values into a probability-like distribution."""
        values = self.as_dict()
        total = sum(values.values()) + SHARE_EPSILON
        return {e: v / total for e, v in values.items()}


# ── Classifier state ──────────────────────────────────────────


@dataclass(slots=True)
class ClassifierState:
    """Hysteresis memory of the emotion classifier.

    ``last_switch`` is in seconds on the caller's clock; ``None`` until the
    first switch, which means no cooldown is running.
    """

    current_emotion: Emotion = Emotion.NEUTRAL
    last_switch: float | None = field(default=None)

    def reset(self) -> None:
        self.current_emotion = Emotion.NEUTRAL
        self.last_switch = None
