"""Tests for bubble entities, the per-tick simulation and the spawner."""

from __future__ import annotations

import math
import random
import statistics

import pytest

from mood_bubbles.affect.difficulty import Difficulty, difficulty_for
from mood_bubbles.game.bubbles import (
    EDGE_INSET,
    MAX_DIAM,
    MIN_DIAM,
    STUCK_FRAMES,
    UNSTICK_NUDGE,
    Bubble,
    BubbleField,
    PlayArea,
)
from mood_bubbles.game.spawner import Spawner, starting_count
from mood_bubbles.models import BubbleKind, GameMode

CLASSIC = difficulty_for(GameMode.CLASSIC)


def _angle_gap(a: float, b: float) -> float:
    d = abs(a - b) % 360.0
    return min(d, 360.0 - d)


def _inside(b: Bubble, area: PlayArea) -> bool:
    lo_x, hi_x = area.span_x(b.radius)
    lo_y, hi_y = area.span_y(b.radius)
    return lo_x <= b.x <= hi_x and lo_y <= b.y <= hi_y


# ── Play area ────────────────────────────────────────────────


class TestPlayArea:
    def test_from_viewport_pads_below_chrome(self):
        area = PlayArea.from_viewport(800, 600, chrome_height=55.2)
        assert area.top == 64.0
        assert area.bottom == 600.0
        assert area.width == 800.0

    def test_no_chrome(self):
        assert PlayArea.from_viewport(800, 600).top == 0.0

    def test_chrome_taller_than_viewport(self):
        area = PlayArea.from_viewport(800, 50, chrome_height=100)
        assert area.height == 0.0
        assert area.span_y(30) == (50.0, 50.0)

    def test_span_collapses_to_midpoint(self):
        area = PlayArea(0, 40, 0, 40)
        assert area.span_x(30) == (20.0, 20.0)


# ── Entity ───────────────────────────────────────────────────


class TestBubble:
    def test_non_finite_fields_fall_back(self):
        b = Bubble(x=math.nan, y=math.inf, diameter=math.nan, heading=math.nan, base_speed=-3.0)
        assert (b.x, b.y) == (0.0, 0.0)
        assert b.diameter == MIN_DIAM
        assert b.heading == 0.0
        assert b.base_speed == 0.0
        assert b.speed == 0.0

        b = Bubble(0, 0, 60, 0, 2, kind="bogus", stuck_frames=math.nan)
        assert b.kind is BubbleKind.NORMAL
        assert b.stuck_frames == 0

    def test_kind_accepts_its_value(self):
        assert Bubble(0, 0, 60, 0, 2, kind="trick").is_trick

    def test_diameter_clamped(self):
        assert Bubble(0, 0, diameter=500, heading=0, base_speed=2).diameter == MAX_DIAM

    def test_heading_normalised(self):
        assert Bubble(0, 0, 60, heading=-10, base_speed=2).heading == pytest.approx(350.0)

    def test_non_positive_hit_scale_reset(self):
        assert Bubble(0, 0, 60, 0, 2, hit_scale=0).hit_scale == 1.0

    def test_speed_defaults_to_base(self):
        assert Bubble(0, 0, 60, 0, 2.5).speed == 2.5

    def test_radius_and_contains(self):
        b = Bubble(100, 100, 60, 0, 2)
        assert b.radius == 30.0
        assert b.contains(120, 100)
        assert not b.contains(135, 100)
        assert b.contains(135, 100, pad=12)


# ── Field ────────────────────────────────────────────────────


class TestBubbleField:
    def test_topmost_wins_hit_test(self):
        field = BubbleField()
        under = Bubble(100, 100, 60, 0, 2)
        over = Bubble(110, 100, 60, 0, 2, kind=BubbleKind.TRICK)
        field.add(under)
        field.add(over)
        assert field.hit_test(105, 100) is over
        assert field.hit_test(75, 100) is under
        assert field.hit_test(400, 400) is None

    def test_iteration_is_a_snapshot(self):
        field = BubbleField([Bubble(i * 100, 100, 60, 0, 2) for i in range(3)])
        for b in field:
            field.remove(b)
        assert len(field) == 0

    def test_remove_missing(self):
        assert BubbleField().remove(Bubble(0, 0, 60, 0, 2)) is False

    def test_count_by_kind(self):
        field = BubbleField([Bubble(0, 0, 60, 0, 2), Bubble(0, 0, 60, 0, 2, kind=BubbleKind.TRICK)])
        assert field.count(BubbleKind.NORMAL) == 1
        assert field.count(BubbleKind.TRICK) == 1


# ── Tick ─────────────────────────────────────────────────────


class TestTick:
    def test_left_edge_reflection(self, area, rng):
        b = Bubble(x=30.1, y=300, diameter=60, heading=190, base_speed=2.0)
        BubbleField([b]).tick(area, CLASSIC, rng=rng)
        assert b.x >= b.radius
        assert b.x == pytest.approx(b.radius + EDGE_INSET)
        assert _angle_gap(b.heading, 350.0) <= 2.0

    def test_top_edge_reflection(self, area, rng):
        b = Bubble(x=400, y=30.1, diameter=60, heading=270, base_speed=2.0)
        BubbleField([b]).tick(area, CLASSIC, rng=rng)
        assert b.y >= b.radius
        assert _angle_gap(b.heading, 90.0) <= 2.0

    def test_moves_along_heading(self, area):
        b = Bubble(x=400, y=300, diameter=60, heading=0, base_speed=2.0)
        BubbleField([b]).tick(area, CLASSIC, rng=random.Random(3))
        assert b.x > 400
        assert b.speed == pytest.approx(1.5)

    def test_shrunk_area_pulls_bubble_back(self, area, rng):
        b = Bubble(x=400, y=550, diameter=60, heading=90, base_speed=2.0)
        field = BubbleField([b])
        field.tick(area, CLASSIC, rng=rng)
        field.tick(PlayArea(0, 800, 64, 400), CLASSIC, rng=rng)
        assert 64 + b.radius <= b.y <= 400 - b.radius

    def test_bubbles_stay_inside_changing_area(self, spawner, rng):
        big = PlayArea(0, 800, 64, 600)
        small = PlayArea(0, 600, 120, 450)
        field = BubbleField([spawner.spawn(GameMode.CHALLENGE, big) for _ in range(12)])
        difficulty = difficulty_for(GameMode.CHALLENGE)
        for i in range(1500):
            current = big if (i // 250) % 2 == 0 else small
            field.tick(current, difficulty, rng=rng)
            assert all(_inside(b, current) for b in field)

    def test_size_multiplier_grows_radius(self, area, rng):
        b = Bubble(x=400, y=300, diameter=60, heading=45, base_speed=2.0)
        BubbleField([b]).tick(area, Difficulty(1.0, 1.35), rng=rng)
        assert b.radius == pytest.approx(30 * 1.35)

    def test_speed_never_below_floor(self, area, rng):
        b = Bubble(x=400, y=300, diameter=60, heading=45, base_speed=0.0)
        BubbleField([b]).tick(area, CLASSIC, rng=rng)
        assert b.speed == pytest.approx(0.9)

    def test_stuck_bubble_is_recovered(self, rng):
        cramped = PlayArea(0, 40, 0, 40)
        b = Bubble(x=20, y=20, diameter=60, heading=10, base_speed=2.0)
        field = BubbleField([b])
        for _ in range(STUCK_FRAMES):
            field.tick(cramped, CLASSIC, rng=rng)
        assert b.stuck_frames == STUCK_FRAMES

        field.tick(cramped, CLASSIC, rng=rng)
        assert b.stuck_frames == 0
        assert (b.x, b.y) == (20.0, 20.0)
        assert b.speed >= 2.0 * 1.05

    def test_stuck_against_left_edge_is_nudged_inward(self, area, rng):
        b = Bubble(x=30.0 + EDGE_INSET, y=300, diameter=60, heading=180, base_speed=2.0)
        b.stuck_frames = STUCK_FRAMES
        BubbleField([b]).tick(area, CLASSIC, rng=rng)
        assert b.stuck_frames == 0
        assert b.x == pytest.approx(area.left + b.radius + UNSTICK_NUDGE)

    def test_corrupted_position_restarts_from_centre(self, area, rng):
        b = Bubble(x=400, y=300, diameter=60, heading=45, base_speed=2.0)
        b.x = math.nan
        field = BubbleField([b])
        field.tick(area, CLASSIC, rng=rng)
        assert math.isfinite(b.x)
        assert abs(b.x - 400.0) <= b.speed + 1e-9
        for _ in range(50):
            field.tick(area, CLASSIC, rng=rng)
        assert b.radius <= b.x <= area.right - b.radius
        assert field.hit_test(b.x, b.y) is b

    def test_free_bubble_never_counts_as_stuck(self, area, rng):
        b = Bubble(x=400, y=300, diameter=60, heading=33, base_speed=1.6)
        field = BubbleField([b])
        worst = 0
        for _ in range(2000):
            field.tick(area, CLASSIC, rng=rng)
            worst = max(worst, b.stuck_frames)
        assert worst < STUCK_FRAMES


# ── Spawner ──────────────────────────────────────────────────


class TestSpawner:
    def test_starting_counts(self):
        assert starting_count(GameMode.CLASSIC) == 12
        assert starting_count(GameMode.CHALLENGE) == 16
        assert starting_count(GameMode.BIO) == 10

    def test_spawns_inside_area(self, spawner, area):
        for mode in GameMode:
            for _ in range(200):
                b = spawner.spawn(mode, area)
                assert MIN_DIAM <= b.diameter <= MAX_DIAM
                assert _inside(b, area)

    def test_no_near_horizontal_headings(self, spawner, area):
        for _ in range(1000):
            b = spawner.spawn(GameMode.CLASSIC, area)
            assert abs(math.sin(math.radians(b.heading))) >= 0.2

    def test_classic_and_bio_never_spawn_tricks(self, spawner, area):
        for mode in (GameMode.CLASSIC, GameMode.BIO):
            kinds = [spawner.spawn(mode, area).kind for _ in range(1000)]
            assert BubbleKind.TRICK not in kinds

    def test_challenge_trick_rate(self, spawner, area):
        tricks = [spawner.spawn(GameMode.CHALLENGE, area) for _ in range(1000)]
        share = sum(b.is_trick for b in tricks) / len(tricks)
        assert 0.17 <= share <= 0.27

    def test_trick_tint(self, spawner, area):
        for b in (spawner.spawn(GameMode.CHALLENGE, area) for _ in range(200)):
            assert (b.tint[0] > b.tint[1]) == b.is_trick

    def test_trick_cap_on_live_bubbles(self, spawner, area):
        live = [
            Bubble(0, 0, 60, 0, 2, kind=BubbleKind.TRICK),
            Bubble(0, 0, 60, 0, 2, kind=BubbleKind.TRICK),
            Bubble(0, 0, 60, 0, 2),
            Bubble(0, 0, 60, 0, 2),
        ]
        kinds = [spawner.spawn(GameMode.CHALLENGE, area, live=live).kind for _ in range(200)]
        assert BubbleKind.TRICK not in kinds

    def test_gaze_biases_bio_spawns(self, spawner, area):
        biased = [spawner.spawn(GameMode.BIO, area, gaze=(0.9, 0.9)).x for _ in range(500)]
        assert statistics.mean(biased) > 550

    def test_gaze_ignored_outside_bio(self, spawner, area):
        xs = [spawner.spawn(GameMode.CLASSIC, area, gaze=(0.9, 0.9)).x for _ in range(500)]
        assert 330 < statistics.mean(xs) < 470

    def test_seeded_spawns_reproduce(self, area):
        a = Spawner(random.Random(9)).spawn(GameMode.CHALLENGE, area)
        b = Spawner(random.Random(9)).spawn(GameMode.CHALLENGE, area)
        assert (a.x, a.y, a.heading, a.kind) == (b.x, b.y, b.heading, b.kind)
