"""Emotion classifier — hysteresis state machine over smoothed expression scores.

The decision ladder is an ordered list of rules.  Each rule is a pure
function of the current :class:`Evidence` that either returns a
:class:`Decision` or ``None`` to fall through to the next rule.  The first
decision wins; :class:`EmotionClassifier` then applies the cooldown and
mutates :class:`ClassifierState` only when a switch actually happens.

Rule order
----------
=================  ========================================================
Rule               Fires when
=================  ========================================================
hold_current       the active label still has enough share to stay
strong_neutral     neutral is the largest share and above ``neutral_on``
force_<emotion>    the smoothed raw value crosses the per-label override
margin             top non-neutral share ≥ ``on`` and leads #2 by ``margin``
neutral_fallback   neutral share ≥ ``neutral_off``
hold               always (ambiguous signal keeps the previous label)
=================  ========================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import structlog

from mood_bubbles.affect.models import ClassifierState, SmoothedState
from mood_bubbles.models import Emotion

logger = structlog.get_logger(__name__)

_NON_NEUTRAL = (Emotion.HAPPY, Emotion.SAD, Emotion.ANGRY)


@dataclass(frozen=True, slots=True)
class ClassifierThresholds:
    """Tunable thresholds (shares unless noted otherwise)."""

    on: float = 0.40
    off: float = 0.33
    neutral_on: float = 0.58
    neutral_off: float = 0.40
    margin: float = 0.05
    cooldown_seconds: float = 2.2

    # Raw (non-normalised) smoothed values that force an immediate switch
    force_happy: float = 0.42
    force_sad: float = 0.38
    force_angry: float = 0.40

    def force_threshold(self, emotion: Emotion) -> float:
        return getattr(self, f"force_{emotion.value}")


@dataclass(frozen=True, slots=True)
class Evidence:
    """Everything a rule may look at for one classification step."""

    state: SmoothedState
    shares: dict[Emotion, float]
    current: Emotion
    in_cooldown: bool
    thresholds: ClassifierThresholds


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of a rule: switch to ``emotion`` or hold the current one."""

    emotion: Emotion
    rule: str
    switch: bool = True


Rule = Callable[[Evidence], Decision | None]


# ── Rules ─────────────────────────────────────────────────────


def hold_current(ev: Evidence) -> Decision | None:
    t = ev.thresholds
    floor = t.neutral_off if ev.current is Emotion.NEUTRAL else t.off
    if ev.shares[ev.current] >= floor:
        return Decision(ev.current, "hold_current", switch=False)
    return None


def strong_neutral(ev: Evidence) -> Decision | None:
    top = max(ev.shares, key=ev.shares.__getitem__)
    if top is Emotion.NEUTRAL and ev.shares[Emotion.NEUTRAL] >= ev.thresholds.neutral_on:
        return Decision(Emotion.NEUTRAL, "strong_neutral")
    return None


def force_override(emotion: Emotion) -> Rule:
    """Build the raw-value override rule for one non-neutral label."""

    def rule(ev: Evidence) -> Decision | None:
        if ev.state.value(emotion) < ev.thresholds.force_threshold(emotion):
            return None
        if ev.current is emotion and ev.in_cooldown:
            return None
        return Decision(emotion, f"force_{emotion.value}")

    rule.__name__ = f"force_{emotion.value}"
    return rule


def margin_leader(ev: Evidence) -> Decision | None:
    ranked = sorted(_NON_NEUTRAL, key=ev.shares.__getitem__, reverse=True)
    top, second = ev.shares[ranked[0]], ev.shares[ranked[1]]
    if top >= ev.thresholds.on and (top - second) >= ev.thresholds.margin:
        return Decision(ranked[0], "margin")
    return None


def neutral_fallback(ev: Evidence) -> Decision | None:
    if ev.shares[Emotion.NEUTRAL] >= ev.thresholds.neutral_off:
        return Decision(Emotion.NEUTRAL, "neutral_fallback")
    return None


def hold_previous(ev: Evidence) -> Decision:
    return Decision(ev.current, "hold", switch=False)


DEFAULT_RULES: tuple[Rule, ...] = (
    hold_current,
    strong_neutral,
    force_override(Emotion.HAPPY),
    force_override(Emotion.SAD),
    force_override(Emotion.ANGRY),
    margin_leader,
    neutral_fallback,
    hold_previous,
)


# ── Classifier ────────────────────────────────────────────────


class EmotionClassifier:
    """Turns a :class:`SmoothedState` into one stable :class:`Emotion`.

    Parameters
    ----------
    thresholds : ClassifierThresholds | None
        Threshold set; defaults to the tuned game values.
    rules : Sequence[Rule] | None
        Ordered rule list; the last rule should always decide.
    """

    def __init__(
        self,
        thresholds: ClassifierThresholds | None = None,
        rules: Sequence[Rule] | None = None,
    ) -> None:
        self._thresholds = thresholds or ClassifierThresholds()
        self._rules: tuple[Rule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES
        self._state = ClassifierState()

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def current(self) -> Emotion:
        return self._state.current_emotion

    def reset(self) -> None:
        self._state.reset()

    def in_cooldown(self, now: float) -> bool:
        last = self._state.last_switch
        return last is not None and (now - last) < self._thresholds.cooldown_seconds

    def decide(self, state: SmoothedState, now: float) -> Decision:
        """Evaluate the rule list without touching the classifier state."""
        ev = Evidence(
            state=state,
            shares=state.shares(),
            current=self._state.current_emotion,
            in_cooldown=self.in_cooldown(now),
            thresholds=self._thresholds,
        )
        for rule in self._rules:
            decision = rule(ev)
            if decision is not None:
                return decision
        return hold_previous(ev)

    def classify(self, state: SmoothedState, now: float) -> Emotion:
        """Classify ``state`` at time ``now`` (seconds) and apply the result."""
        decision = self.decide(state, now)
        current = self._state.current_emotion
        if not decision.switch:
            return current
        # Cooldown only guards against re-entering the active label
        if decision.emotion is current and self.in_cooldown(now):
            return current

        if decision.emotion is not current:
            logger.info(
                "classifier.switch",
                previous=current.value,
                emotion=decision.emotion.value,
                rule=decision.rule,
            )
        self._state.current_emotion = decision.emotion
        self._state.last_switch = now
        return decision.emotion
