"""Bubble entities and the per-tick simulation over the live collection."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Iterator

import structlog

from mood_bubbles.affect.difficulty import MIN_PLAY_SPEED, Difficulty, effective_speed
from mood_bubbles.models import BubbleKind

logger = structlog.get_logger(__name__)

# ── Geometry & kinematics ─────────────────────────────────────

MIN_DIAM, MAX_DIAM = 50.0, 88.0
MIN_SPEED, MAX_SPEED = 1.6, 3.8

HEADING_JITTER = 0.35  # degrees per tick
BOUNCE_PERTURB = 1.5  # degrees added on every reflection
EDGE_INSET = 0.5  # px kept between a reflected bubble and the edge

# A bubble moving less than this per tick for this many ticks is stuck
STUCK_SPEED = 0.15
STUCK_FRAMES = 18
UNSTICK_NUDGE = 2.0
UNSTICK_BOOST = 1.05

# Safe area padding below the UI chrome
SAFE_TOP_PAD = 8.0

COLOR_TEAL = (15, 118, 110, 200)
COLOR_RED = (198, 40, 40, 200)


def _finite(value: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _kind(value: object) -> BubbleKind:
    try:
        return BubbleKind(value)
    except ValueError:
        return BubbleKind.NORMAL


# ── Play area ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PlayArea:
    """Current safe play rectangle in screen coordinates (y grows downward)."""

    left: float
    right: float
    top: float
    bottom: float

    @classmethod
    def from_viewport(cls, width: float, height: float, chrome_height: float = 0.0) -> PlayArea:
        """Area below the UI chrome; ``chrome_height`` may change every frame."""
        top = math.ceil(max(0.0, chrome_height)) + SAFE_TOP_PAD if chrome_height > 0 else 0.0
        return cls(0.0, float(width), float(min(top, height)), float(height))

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def span_x(self, radius: float) -> tuple[float, float]:
        """Valid centre range on x for a bubble of ``radius``."""
        return _span(self.left, self.right, radius)

    def span_y(self, radius: float) -> tuple[float, float]:
        return _span(self.top, self.bottom, radius)


def _span(lo: float, hi: float, radius: float) -> tuple[float, float]:
    a, b = lo + radius, hi - radius
    if b < a:
        mid = (lo + hi) / 2
        return mid, mid
    return a, b


# ── Entity ────────────────────────────────────────────────────


@dataclass(slots=True)
class Bubble:
    """One poppable bubble.

    Fields are validated on construction so the tick loop can trust them:
    non-finite numbers fall back to defaults, the diameter is clamped into
    ``[MIN_DIAM, MAX_DIAM]`` and speeds are never negative.  ``heading`` is
    in degrees, ``base_speed`` never changes after spawn.
    """

    x: float
    y: float
    diameter: float
    heading: float
    base_speed: float
    speed: float = -1.0
    kind: BubbleKind = BubbleKind.NORMAL
    tint: tuple[int, int, int, int] = COLOR_TEAL
    hit_scale: float = 1.0
    stuck_frames: int = 0
    radius: float = field(default=0.0, init=False)

    def __post_init__(self) -> None:
        self.x = _finite(self.x, 0.0)
        self.y = _finite(self.y, 0.0)
        self.diameter = min(MAX_DIAM, max(MIN_DIAM, _finite(self.diameter, MIN_DIAM)))
        self.heading = _finite(self.heading, 0.0) % 360.0
        self.base_speed = max(0.0, _finite(self.base_speed, MIN_SPEED))
        speed = _finite(self.speed, -1.0)
        self.speed = speed if speed >= 0 else self.base_speed
        scale = _finite(self.hit_scale, 1.0)
        self.hit_scale = scale if scale > 0 else 1.0
        self.kind = _kind(self.kind)
        self.stuck_frames = max(0, int(_finite(self.stuck_frames, 0)))
        self.radius = self.effective_radius()

    @property
    def is_trick(self) -> bool:
        return self.kind is BubbleKind.TRICK

    def effective_radius(self, size_multiplier: float = 1.0) -> float:
        return max(1.0, self.diameter * self.hit_scale * _finite(size_multiplier, 1.0) / 2)

    def contains(self, px: float, py: float, pad: float = 0.0) -> bool:
        dx, dy = px - self.x, py - self.y
        reach = self.radius + pad
        return dx * dx + dy * dy <= reach * reach


# ── Simulation ────────────────────────────────────────────────


class BubbleField:
    """The live bubble collection and its per-tick update.

    Insertion order is draw order; the most recently added bubble is on top
    and wins hit tests.
    """

    def __init__(self, bubbles: list[Bubble] | None = None) -> None:
        self._bubbles: list[Bubble] = list(bubbles or [])

    def __len__(self) -> int:
        return len(self._bubbles)

    def __iter__(self) -> Iterator[Bubble]:
        return iter(tuple(self._bubbles))

    def add(self, bubble: Bubble) -> None:
        self._bubbles.append(bubble)

    def remove(self, bubble: Bubble) -> bool:
        try:
            self._bubbles.remove(bubble)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._bubbles.clear()

    def count(self, kind: BubbleKind) -> int:
        return sum(1 for b in self._bubbles if b.kind is kind)

    def hit_test(self, px: float, py: float, pad: float = 0.0) -> Bubble | None:
        """Return the topmost bubble containing the point, if any."""
        for bubble in reversed(self._bubbles):
            if bubble.contains(px, py, pad):
                return bubble
        return None

    # ── Tick ──────────────────────────────────────────────────

    def tick(
        self,
        area: PlayArea,
        difficulty: Difficulty,
        *,
        easing: float = 1.0,
        rng: random.Random | None = None,
        step: float = 1.0,
    ) -> None:
        """Advance every bubble by one frame inside the *current* ``area``."""
        rng = rng or random.Random()
        for bubble in self._bubbles:
            self._advance(bubble, area, difficulty, easing, rng, step)

    @staticmethod
    def _advance(
        b: Bubble,
        area: PlayArea,
        difficulty: Difficulty,
        easing: float,
        rng: random.Random,
        step: float,
    ) -> None:
        b.heading = _finite(b.heading + rng.uniform(-HEADING_JITTER, HEADING_JITTER), 0.0) % 360.0
        r = b.effective_radius(difficulty.size_multiplier)
        b.radius = r
        b.speed = _finite(effective_speed(b.base_speed, difficulty, easing), MIN_PLAY_SPEED)

        # A position corrupted after construction restarts from the area centre
        b.x = _finite(b.x, sum(area.span_x(r)) / 2)
        b.y = _finite(b.y, sum(area.span_y(r)) / 2)
        x0, y0 = b.x, b.y
        theta = math.radians(b.heading)
        b.x = _finite(b.x + math.cos(theta) * b.speed * step, x0)
        b.y = _finite(b.y + math.sin(theta) * b.speed * step, y0)

        _reflect(b, area, r, rng)

        if math.hypot(b.x - x0, b.y - y0) < STUCK_SPEED:
            b.stuck_frames += 1
        else:
            b.stuck_frames = 0
        if b.stuck_frames > STUCK_FRAMES:
            _unstick(b, area, r, rng)


def _reflect(b: Bubble, area: PlayArea, r: float, rng: random.Random) -> None:
    lo_y, hi_y = area.span_y(r)
    if b.y <= lo_y:
        b.y = min(lo_y + EDGE_INSET, hi_y)
        b.heading = _bounce(360.0 - b.heading, rng)
    elif b.y >= hi_y:
        b.y = max(hi_y - EDGE_INSET, lo_y)
        b.heading = _bounce(360.0 - b.heading, rng)

    lo_x, hi_x = area.span_x(r)
    if b.x <= lo_x:
        b.x = min(lo_x + EDGE_INSET, hi_x)
        b.heading = _bounce(180.0 - b.heading, rng)
    elif b.x >= hi_x:
        b.x = max(hi_x - EDGE_INSET, lo_x)
        b.heading = _bounce(180.0 - b.heading, rng)


def _bounce(heading: float, rng: random.Random) -> float:
    return (heading + rng.uniform(-BOUNCE_PERTURB, BOUNCE_PERTURB)) % 360.0


def _unstick(b: Bubble, area: PlayArea, r: float, rng: random.Random) -> None:
    b.heading = rng.uniform(0.0, 360.0)
    b.speed = max(b.base_speed * UNSTICK_BOOST, MIN_PLAY_SPEED + 0.2)

    if b.y - r <= area.top + 1:
        b.y = area.top + r + UNSTICK_NUDGE
    elif b.y + r >= area.bottom - 1:
        b.y = area.bottom - r - UNSTICK_NUDGE
    if b.x - r <= area.left + 1:
        b.x = area.left + r + UNSTICK_NUDGE
    elif b.x + r >= area.right - 1:
        b.x = area.right - r - UNSTICK_NUDGE

    lo_x, hi_x = area.span_x(r)
    lo_y, hi_y = area.span_y(r)
    b.x = min(hi_x, max(lo_x, b.x))
    b.y = min(hi_y, max(lo_y, b.y))
    b.stuck_frames = 0
    logger.debug("bubbles.unstuck", x=round(b.x, 1), y=round(b.y, 1), heading=round(b.heading, 1))
