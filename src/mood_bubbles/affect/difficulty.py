"""Difficulty mapping: (mode, emotion) → speed and size multipliers."""

from __future__ import annotations

from dataclasses import dataclass

from mood_bubbles.models import Emotion, GameMode

# Absolute floor on per-bubble speed after every multiplier
MIN_PLAY_SPEED = 0.9

CLASSIC_SPEED_SCALE = 0.75
CLASSIC_SPEED_CAP = 3.0
CHALLENGE_SPEED_SCALE = 1.3

BIO_SPEED = {
    Emotion.HAPPY: 1.3,
    Emotion.SAD: 0.8,
    Emotion.ANGRY: 1.0,
    Emotion.NEUTRAL: 1.0,
}
BIO_SPEED_RANGE = (0.5, 1.6)

# Bubbles grow with the smoothed angry value in bio mode
ANGRY_SIZE_GAIN = 0.35


@dataclass(frozen=True, slots=True)
class Difficulty:
    speed_multiplier: float = 1.0
    size_multiplier: float = 1.0
    speed_cap: float | None = None


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def difficulty_for(mode: GameMode, emotion: Emotion = Emotion.NEUTRAL, angry: float = 0.0) -> Difficulty:
    """Return the multipliers for one simulation tick.

    ``angry`` is the smoothed raw angry value, not its share; it sizes
    bubbles in bio mode whatever label the classifier currently holds.
    """
    if mode is GameMode.CLASSIC:
        return Difficulty(CLASSIC_SPEED_SCALE, 1.0, CLASSIC_SPEED_CAP)
    if mode is GameMode.CHALLENGE:
        return Difficulty(CHALLENGE_SPEED_SCALE, 1.0, None)

    speed = _clamp(BIO_SPEED.get(emotion, 1.0), *BIO_SPEED_RANGE)
    size = 1.0 + ANGRY_SIZE_GAIN * _clamp(angry, 0.0, 1.0)
    return Difficulty(speed, size, None)


def effective_speed(base_speed: float, difficulty: Difficulty, easing: float = 1.0) -> float:
    """Scale ``base_speed``, apply the mode cap, then the global floor."""
    speed = base_speed * difficulty.speed_multiplier * easing
    if difficulty.speed_cap is not None:
        speed = min(speed, difficulty.speed_cap)
    return max(speed, MIN_PLAY_SPEED)
