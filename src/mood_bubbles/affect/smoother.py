"""Exponential smoothing of raw expression samples, decaying to neutral."""

from __future__ import annotations

import structlog

from mood_bubbles.affect.models import ExpressionSample, SmoothedState

logger = structlog.get_logger(__name__)

# Fast adaptation while a face is visible
SAMPLE_ALPHA = 0.75

# Slow drift back to neutral when no face is detected
DECAY_ALPHA = 0.3


def ema(prev: float, sample: float, alpha: float) -> float:
    """Recursive exponential moving average step."""
    return alpha * sample + (1.0 - alpha) * prev


class SignalSmoother:
    """Keeps the session's :class:`SmoothedState` and folds samples into it.

    Parameters
    ----------
    alpha : float
        Smoothing factor applied when a sample is present.
    decay_alpha : float
        Smoothing factor for the decay step when the sample is ``None``.
    """

    def __init__(self, alpha: float = SAMPLE_ALPHA, decay_alpha: float = DECAY_ALPHA) -> None:
        self._alpha = alpha
        self._decay_alpha = decay_alpha
        self._state = SmoothedState()

    @property
    def state(self) -> SmoothedState:
        return self._state

    def reset(self) -> None:
        self._state = SmoothedState()

    def update(self, raw: ExpressionSample | None) -> SmoothedState:
        """Fold one sample (or its absence) into the state and return it."""
        prev = self._state
        if raw is None:
            a = self._decay_alpha
            self._state = SmoothedState(
                happy=ema(prev.happy, 0.0, a),
                sad=ema(prev.sad, 0.0, a),
                angry=ema(prev.angry, 0.0, a),
                neutral=ema(prev.neutral, 1.0, a),
            )
            return self._state

        neutral = raw.neutral
        if neutral is None:
            neutral = max(0.0, 1.0 - (raw.happy + raw.sad + raw.angry))

        a = self._alpha
        self._state = SmoothedState(
            happy=ema(prev.happy, raw.happy, a),
            sad=ema(prev.sad, raw.sad, a),
            angry=ema(prev.angry, raw.angry, a),
            neutral=ema(prev.neutral, neutral, a),
        )
        logger.debug("smoother.update", **{e.value: round(v, 3) for e, v in self._state.as_dict().items()})
        return self._state
