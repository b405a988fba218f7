"""Affect subsystem — from noisy facial-expression scores to one stable mood.

Architecture
------------
1. **Smoothing** (`smoother.py`)
   - EMA of raw per-sample scores (fast, α = 0.75)
   - Decay toward neutral when no face is visible (slow, α = 0.3)

2. **Classification** (`classifier.py`)
   - Share normalisation over happy / sad / angry / neutral
   - Ordered rule list: hold, strong neutral, raw overrides, margin,
     neutral fallback
   - Cooldown against re-entering the active label

3. **Difficulty** (`difficulty.py`)
   - Pure (mode, emotion) → speed / size multipliers with a global floor

4. **Tracking** (`tracker.py`)
   - Glue object the game loop reads; tallies labels per run
"""

from mood_bubbles.affect.classifier import ClassifierThresholds, Decision, EmotionClassifier
from mood_bubbles.affect.difficulty import Difficulty, difficulty_for, effective_speed
from mood_bubbles.affect.models import ClassifierState, ExpressionSample, SmoothedState
from mood_bubbles.affect.smoother import SignalSmoother
from mood_bubbles.affect.tracker import MoodTracker

__all__ = [
    "ClassifierState",
    "ClassifierThresholds",
    "Decision",
    "Difficulty",
    "EmotionClassifier",
    "ExpressionSample",
    "MoodTracker",
    "SignalSmoother",
    "SmoothedState",
    "difficulty_for",
    "effective_speed",
]
