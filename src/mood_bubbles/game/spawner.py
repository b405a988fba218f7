"""Bubble factory: validated bubbles per mode, gaze-biased in bio mode."""

from __future__ import annotations

import math
import random
from typing import Iterable

import structlog

from mood_bubbles.game.bubbles import (
    COLOR_RED,
    COLOR_TEAL,
    MAX_DIAM,
    MAX_SPEED,
    MIN_DIAM,
    MIN_SPEED,
    Bubble,
    PlayArea,
)
from mood_bubbles.models import BubbleKind, GameMode

logger = structlog.get_logger(__name__)

CHALLENGE_TRICK_RATE = 0.22
MAX_TRICK_RATIO = 0.5  # never more than half of the live bubbles are tricks

# Headings this close to horizontal (|sin| below) get rotated by 45°
NEAR_HORIZONTAL_SIN = 0.2

GAZE_PULL = 0.6
SPAWN_TOP_CLEARANCE = 8.0

START_BUBBLES = {
    GameMode.CLASSIC: 12,
    GameMode.CHALLENGE: 16,
    GameMode.BIO: 10,
}


def starting_count(mode: GameMode) -> int:
    return START_BUBBLES[mode]


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class Spawner:
    """Bubble factory.

    Parameters
    ----------
    rng : random.Random | None
        Random source; pass a seeded instance for reproducible runs.
    trick_rate : float
        Per-spawn trick probability in challenge mode.
    max_trick_ratio : float
        Share of live tricks at which further tricks are suppressed.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        trick_rate: float = CHALLENGE_TRICK_RATE,
        max_trick_ratio: float = MAX_TRICK_RATIO,
    ) -> None:
        self._rng = rng or random.Random()
        self._trick_rate = trick_rate
        self._max_trick_ratio = max_trick_ratio

    @property
    def rng(self) -> random.Random:
        return self._rng

    def spawn(
        self,
        mode: GameMode,
        area: PlayArea,
        gaze: tuple[float, float] | None = None,
        live: Iterable[Bubble] = (),
    ) -> Bubble:
        """Create one bubble inside ``area``.

        ``gaze`` is a normalised ``(x, y)`` hint used in bio mode only;
        ``live`` is the current collection, consulted for the trick cap.
        """
        rng = self._rng
        diameter = rng.uniform(MIN_DIAM, MAX_DIAM)
        r = diameter / 2

        angle = rng.uniform(0.0, 2 * math.pi)
        if abs(math.sin(angle)) < NEAR_HORIZONTAL_SIN:
            angle += math.pi / 4
        speed = rng.uniform(MIN_SPEED, MAX_SPEED)

        lo_x, hi_x = area.span_x(r)
        lo_y, hi_y = area.span_y(r)
        x = rng.uniform(lo_x, hi_x)
        y = rng.uniform(min(lo_y + SPAWN_TOP_CLEARANCE, hi_y), hi_y)

        if mode is GameMode.BIO and gaze is not None:
            gx = area.left + area.width * _clamp(gaze[0], 0.0, 1.0)
            gy = area.top + area.height * _clamp(gaze[1], 0.0, 1.0)
            x = _clamp(_lerp(x, gx, GAZE_PULL), lo_x, hi_x)
            y = _clamp(_lerp(y, gy, GAZE_PULL), lo_y, hi_y)

        kind = BubbleKind.TRICK if self._roll_trick(mode, live) else BubbleKind.NORMAL
        return Bubble(
            x=x,
            y=y,
            diameter=diameter,
            heading=math.degrees(angle),
            base_speed=speed,
            kind=kind,
            tint=COLOR_RED if kind is BubbleKind.TRICK else COLOR_TEAL,
        )

    def _roll_trick(self, mode: GameMode, live: Iterable[Bubble]) -> bool:
        if mode is not GameMode.CHALLENGE:
            return False
        live = list(live)
        if live:
            tricks = sum(1 for b in live if b.is_trick)
            if tricks / len(live) >= self._max_trick_ratio:
                return False
        return self._rng.random() < self._trick_rate
