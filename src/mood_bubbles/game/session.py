"""Session / game loop — score, timer, tick ordering and pop routing.

A :class:`GameSession` owns its :class:`SessionState` and
:class:`BubbleField`; nothing here is module-global, so several sessions
can run side by side (one per player, or one per test).

Lifecycle::

    start() ──► Running ──(elapsed ≥ duration)──► Over ──restart()──► Running
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import structlog

from mood_bubbles.affect.difficulty import MIN_PLAY_SPEED, Difficulty, difficulty_for
from mood_bubbles.affect.tracker import MoodTracker
from mood_bubbles.config import get_settings
from mood_bubbles.game.bubbles import Bubble, BubbleField, PlayArea
from mood_bubbles.game.spawner import Spawner, starting_count
from mood_bubbles.models import BubbleKind, GameMode, RunSummary

logger = structlog.get_logger(__name__)

# Miss-streak easing (challenge / bio): slow down after repeated misses
MISS_STREAK_TRIGGER = 3
MISS_STREAK_SLOW_PER_MISS = 0.08
MISS_STREAK_SLOW_CAP = 0.35

SCORE_NORMAL = 1
SCORE_TRICK = -1


@dataclass(slots=True)
class SessionState:
    score: int = 0
    start_time: float = 0.0
    elapsed: float = 0.0
    is_over: bool = False

    # Per-run input statistics
    taps: int = 0
    misses: int = 0
    popped_normal: int = 0
    popped_trick: int = 0

    @property
    def popped(self) -> int:
        return self.popped_normal + self.popped_trick

    @property
    def accuracy(self) -> float:
        return round(self.popped / max(1, self.taps), 3)


@dataclass(frozen=True, slots=True)
class PopResult:
    bubble: Bubble
    delta: int
    score: int


class MissStreakEasing:
    """Rubber-band slowdown that kicks in after consecutive misses."""

    def __init__(
        self,
        trigger: int = MISS_STREAK_TRIGGER,
        per_miss: float = MISS_STREAK_SLOW_PER_MISS,
        cap: float = MISS_STREAK_SLOW_CAP,
    ) -> None:
        self._trigger = trigger
        self._per_miss = per_miss
        self._cap = cap
        self.streak = 0
        self.slow = 0.0

    @property
    def factor(self) -> float:
        return max(1.0 - self.slow, MIN_PLAY_SPEED)

    def note_hit(self) -> None:
        self.streak = 0
        self.slow = max(0.0, self.slow - self._per_miss)

    def note_miss(self) -> None:
        self.streak += 1
        if self.streak >= self._trigger:
            self.slow = min(self._cap, self.slow + self._per_miss)

    def reset(self) -> None:
        self.streak = 0
        self.slow = 0.0


OverCallback = Callable[["GameSession"], None]


class GameSession:
    """One player's run in one mode.

    Parameters
    ----------
    mode : GameMode
        Play mode for the whole run.
    duration : float | None
        Run length in seconds; defaults to ``game_duration_seconds``.
    spawner : Spawner | None
        Bubble factory (its RNG also drives the tick jitter).
    tracker : MoodTracker | None
        Mood source read every tick in bio mode.
    touch_hit_pad : float | None
        Extra hit radius for touch pops; defaults to the configured pad.
    """

    def __init__(
        self,
        mode: GameMode,
        *,
        duration: float | None = None,
        spawner: Spawner | None = None,
        tracker: MoodTracker | None = None,
        touch_hit_pad: float | None = None,
    ) -> None:
        settings = get_settings()
        self.mode = GameMode(mode)
        self.duration = settings.game_duration_seconds if duration is None else duration
        self.spawner = spawner or Spawner()
        self.tracker = tracker
        self.touch_hit_pad = settings.touch_hit_pad if touch_hit_pad is None else touch_hit_pad
        self.field = BubbleField()
        self.state = SessionState(is_over=True)
        self.easing = MissStreakEasing()
        self._area: PlayArea | None = None
        self._on_over: list[OverCallback] = []

    # ── Configuration ─────────────────────────────────────────

    def add_over_listener(self, fn: OverCallback) -> None:
        """Register a callback fired once when the run ends."""
        self._on_over.append(fn)

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self, now: float, area: PlayArea) -> None:
        """Begin (or restart) a run: fresh state, fresh board, neutral mood."""
        self._area = area
        self.state = SessionState(start_time=now)
        self.easing.reset()
        self.field.clear()
        self._fill_board(area)
        if self.tracker is not None:
            self.tracker.reset()
        logger.info("session.started", mode=self.mode.value, duration=self.duration, bubbles=len(self.field))

    def restart(self, now: float, area: PlayArea) -> None:
        self.start(now, area)

    @property
    def is_over(self) -> bool:
        return self.state.is_over

    def difficulty(self) -> Difficulty:
        if self.mode is GameMode.BIO and self.tracker is not None:
            return difficulty_for(self.mode, self.tracker.emotion, self.tracker.smoothed.angry)
        return difficulty_for(self.mode)

    # ── Per frame ─────────────────────────────────────────────

    def tick(self, now: float, area: PlayArea) -> bool:
        """Advance one frame.  Returns ``False`` once the run is over."""
        if self.state.is_over:
            return False
        self._area = area
        self.state.elapsed = max(self.state.elapsed, now - self.state.start_time)
        if self.state.elapsed >= self.duration:
            self._finish()
            return False

        easing = self.easing.factor if self.mode is not GameMode.CLASSIC else 1.0
        self.field.tick(area, self.difficulty(), easing=easing, rng=self.spawner.rng)
        return True

    def pop(self, x: float, y: float, *, touch: bool = False) -> PopResult | None:
        """Route a pointer/touch event; ignored once the run is over."""
        if self.state.is_over:
            return None
        self.state.taps += 1
        pad = self.touch_hit_pad if touch else 0.0
        bubble = self.field.hit_test(x, y, pad)
        if bubble is None:
            self.state.misses += 1
            if self.mode is not GameMode.CLASSIC:
                self.easing.note_miss()
            return None

        delta = SCORE_TRICK if bubble.is_trick else SCORE_NORMAL
        self.state.score = max(0, self.state.score + delta)
        if bubble.is_trick:
            self.state.popped_trick += 1
        else:
            self.state.popped_normal += 1
        self.field.remove(bubble)

        if self.mode is GameMode.CLASSIC:
            if self.field.count(BubbleKind.NORMAL) == 0 and self._area is not None:
                self._fill_board(self._area)
                logger.info("session.board_refilled", mode=self.mode.value)
        else:
            self.easing.note_hit()
            if self._area is not None:
                self._spawn(self._area)

        logger.debug("session.pop", kind=bubble.kind.value, delta=delta, score=self.state.score)
        return PopResult(bubble=bubble, delta=delta, score=self.state.score)

    # ── Reporting ─────────────────────────────────────────────

    def summary(
        self,
        device_id: str,
        *,
        username: str = "",
        session_id: str = "",
        game_version: str | None = None,
    ) -> RunSummary:
        """Build the end-of-run report for the telemetry sink."""
        counts = self.tracker.counts() if self.tracker is not None else {}
        shares = self.tracker.shares() if self.tracker is not None else {}
        return RunSummary(
            session_id=session_id,
            device_id=device_id,
            username=username.strip(),
            mode=self.mode,
            score=self.state.score,
            duration_ms=int(round(self.state.elapsed * 1000)),
            bubbles_popped=self.state.popped,
            accuracy=self.state.accuracy,
            game_version=game_version if game_version is not None else get_settings().game_version,
            emotion_counts=counts,
            emotion_shares=shares,
        )

    # ── Internals ─────────────────────────────────────────────

    def _gaze(self) -> tuple[float, float] | None:
        return self.tracker.gaze if self.tracker is not None else None

    def _spawn(self, area: PlayArea) -> Bubble:
        bubble = self.spawner.spawn(self.mode, area, gaze=self._gaze(), live=self.field)
        self.field.add(bubble)
        return bubble

    def _fill_board(self, area: PlayArea) -> None:
        for _ in range(starting_count(self.mode)):
            self._spawn(area)

    def _finish(self) -> None:
        self.state.is_over = True
        logger.info(
            "session.over",
            mode=self.mode.value,
            score=self.state.score,
            popped=self.state.popped,
            accuracy=self.state.accuracy,
        )
        for fn in self._on_over:
            try:
                fn(self)
            except Exception as exc:
                logger.error("session.over_listener_error", listener=getattr(fn, "__qualname__", repr(fn)), error=str(exc))
