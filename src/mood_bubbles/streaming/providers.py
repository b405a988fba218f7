"""Expression providers — the producer side of the sample channel.

Real camera/face-detection providers live outside this package; they only
need to implement :class:`BaseExpressionProvider`.  The two providers here
feed the headless runner and the tests.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Sequence

from mood_bubbles.affect.models import ExpressionSample
from mood_bubbles.models import Emotion


class BaseExpressionProvider(ABC):
    """Contract for anything that yields facial-expression samples.

    :meth:`read` returns ``None`` when no face is visible.  Providers may
    also expose a normalised gaze point through :meth:`gaze`.
    """

    @abstractmethod
    async def read(self) -> ExpressionSample | None:
        """Return the most recent detection, or ``None`` for no face."""

    def gaze(self) -> tuple[float, float] | None:
        return None

    async def close(self) -> None:
        """Release camera / model resources."""


class ScriptedExpressionProvider(BaseExpressionProvider):
    """Replays a fixed list of samples, looping (or holding the last one)."""

    def __init__(self, samples: Sequence[ExpressionSample | None], *, loop: bool = True) -> None:
        if not samples:
            raise ValueError("ScriptedExpressionProvider needs at least one sample.")
        self._samples = list(samples)
        self._loop = loop
        self._index = 0

    async def read(self) -> ExpressionSample | None:
        sample = self._samples[self._index]
        if self._index + 1 < len(self._samples):
            self._index += 1
        elif self._loop:
            self._index = 0
        return sample


class SyntheticMoodProvider(BaseExpressionProvider):
    """Noisy samples centred on a target mood, with occasional face loss.

    Parameters
    ----------
    mood : Emotion
        Label the scores lean toward.
    strength : float
        Score given to the target label before noise.
    noise : float
        Uniform noise amplitude added to every score.
    dropout : float
        Probability that a read reports no face.
    rng : random.Random | None
        Random source.
    """

    def __init__(
        self,
        mood: Emotion = Emotion.NEUTRAL,
        *,
        strength: float = 0.7,
        noise: float = 0.1,
        dropout: float = 0.05,
        rng: random.Random | None = None,
    ) -> None:
        self.mood = mood
        self._strength = strength
        self._noise = noise
        self._dropout = dropout
        self._rng = rng or random.Random()
        self._gaze = (0.5, 0.5)

    async def read(self) -> ExpressionSample | None:
        rng = self._rng
        if rng.random() < self._dropout:
            return None
        rest = (1.0 - self._strength) / 3
        scores = {e.value: rest for e in Emotion}
        scores[self.mood.value] = self._strength
        noisy = {k: v + rng.uniform(-self._noise, self._noise) for k, v in scores.items()}
        self._gaze = (
            min(1.0, max(0.0, self._gaze[0] + rng.uniform(-0.05, 0.05))),
            min(1.0, max(0.0, self._gaze[1] + rng.uniform(-0.05, 0.05))),
        )
        return ExpressionSample.from_scores(noisy)

    def gaze(self) -> tuple[float, float] | None:
        return self._gaze
