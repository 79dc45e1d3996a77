import logging
import math

import numpy as np
import pytest

from trackevo.config import Config
from trackevo.errors import TrackGenerationError
from trackevo.geometry import Vec2
from trackevo.hull import concave_hull
from trackevo.track import (TrackGenerator, TrackRejected, attempt, borders_cross, choose_start, fix_hull_angles,
                            has_self_intersection, hull_angles, push_apart, repair_border)

BOUNDS = (-1000, -1000, 1000, 1000)


def test_push_apart_leaves_separated_points_alone(rng):
    square = [Vec2(0, 0), Vec2(200, 0), Vec2(200, 200), Vec2(0, 200)]
    points, iterations, converged = push_apart(square, 80, BOUNDS, 100, rng)
    assert points == square
    assert iterations == 0
    assert converged


def test_push_apart_separates_coincident_points(rng):
    points, _, _ = push_apart([Vec2(0, 0), Vec2(0, 0)], 80, BOUNDS, 100, rng)
    assert points[0].dist(points[1]) >= 80 - 1e-6


def test_push_apart_gives_up_after_the_cap(rng, caplog):
    crowded = [Vec2(5, 5), Vec2(6, 6), Vec2(7, 5)]
    with caplog.at_level(logging.WARNING, logger="trackevo.track"):
        points, iterations, converged = push_apart(crowded, 1000, (0, 0, 10, 10), 5, rng)
    assert not converged
    assert iterations == 5
    assert all(0 <= p.x <= 10 and 0 <= p.y <= 10 for p in points)
    assert "push-apart" in caplog.text


def test_fix_hull_angles_keeps_wide_angles():
    square = [Vec2(0, 0), Vec2(100, 0), Vec2(100, 100), Vec2(0, 100), Vec2(0, 0)]
    hull, iterations, converged = fix_hull_angles(square, math.radians(60), BOUNDS, 10)
    assert hull == square
    assert iterations == 0
    assert converged


def test_fix_hull_angles_widens_sharp_corner():
    sliver = [Vec2(0, 0), Vec2(100, 0), Vec2(0, 10), Vec2(0, 0)]
    before = min(hull_angles(sliver))
    hull, _, _ = fix_hull_angles(sliver, math.radians(60), BOUNDS, 10)
    assert hull[0] == hull[-1]
    after = min(hull_angles(hull))
    assert after > before
    assert after > math.radians(50)


def test_fix_hull_angles_keeps_rotated_edge_length():
    a, b, c = Vec2(0, 0), Vec2(100, 0), Vec2(0, 10)
    hull, iterations, converged = fix_hull_angles([a, b, c, a], math.radians(60), BOUNDS, 1)
    assert (iterations, converged) == (1, False)
    # the sharp corner at b turns b->c, then the new corner at c turns c->a
    assert hull[1] == b
    assert hull[2] != c
    assert hull[2].dist(b) == pytest.approx(c.dist(b))
    assert hull[0] != a
    assert hull[0].dist(hull[2]) == pytest.approx(a.dist(hull[2]))
    assert hull[-1] == hull[0]


def test_self_intersection():
    square = [Vec2(0, 0), Vec2(10, 0), Vec2(10, 10), Vec2(0, 10), Vec2(0, 0)]
    bowtie = [Vec2(0, 0), Vec2(10, 10), Vec2(10, 0), Vec2(0, 10), Vec2(0, 0)]
    assert not has_self_intersection(square)
    assert has_self_intersection(bowtie)


def test_choose_start_rotates_the_closed_curve(rng):
    centerline = [Vec2(float(i), 0.0) for i in range(10)]
    ordered, pose = choose_start(centerline, rng)
    assert sorted(ordered, key=lambda p: p.x) == centerline
    assert pose.position == ordered[0]
    assert ordered[0] not in (centerline[0], centerline[-1])
    step = ordered[1] - ordered[0]
    assert pose.heading == pytest.approx(step.heading())


def test_repair_border_cuts_out_loop():
    a, b, c, d = Vec2(0, 0), Vec2(10, 0), Vec2(10, -5), Vec2(5, 5)
    border = [a, b, c, d, Vec2(0, 20), Vec2(-5, 10)]
    repaired, repairs = repair_border(border, 10, 100)
    assert repairs == 1
    assert len(repaired) == 5
    assert repaired[0] == a
    assert repaired[1].is_close(Vec2(7.5, 0))
    assert repaired[2] == d
    assert b not in repaired and c not in repaired


def test_repair_border_leaves_clean_border_alone():
    square = [Vec2(0, 0), Vec2(10, 0), Vec2(10, 10), Vec2(0, 10)]
    assert repair_border(square, 10, 100) == (square, 0)


def test_attempt_retries_rejections():
    calls = []

    def flaky(n):
        calls.append(n)
        if n < 3:
            raise TrackRejected("not yet")
        return "track"

    assert attempt(5, flaky) == "track"
    assert calls == [1, 2, 3]


def test_attempt_gives_up():
    def never(n):
        raise TrackRejected("never")

    with pytest.raises(TrackGenerationError):
        attempt(4, never)


@pytest.mark.parametrize("seed", range(5))
def test_generated_tracks_are_well_formed(seed):
    config = Config()
    track = TrackGenerator(config, np.random.default_rng(seed)).generate()

    assert track.hull[0] == track.hull[-1]
    assert len(track.hull) >= 4
    assert not has_self_intersection(track.hull)
    if track.quality.angles_converged:
        assert min(hull_angles(track.hull)) >= math.radians(config.min_hull_angle_deg) - 1e-9

    assert len(track.centerline) == (len(track.hull) - 1) * 2 ** config.curve_subdivisions
    assert track.start_pose.position == track.centerline[0]
    assert track.length > 0
    assert 3 <= len(track.left_border) <= config.border_segments
    assert 3 <= len(track.right_border) <= config.border_segments
    assert not borders_cross(track.left_border, track.right_border)
    assert 1 <= track.quality.attempts <= config.max_track_attempts

    margin = config.margin
    for p in track.points:
        assert margin <= p.x <= config.canvas_width - margin
        assert margin <= p.y <= config.canvas_height - margin


def test_same_seed_same_track():
    first = TrackGenerator(Config(), np.random.default_rng(42)).generate()
    second = TrackGenerator(Config(), np.random.default_rng(42)).generate()
    assert first.centerline == second.centerline
    assert first.start_pose == second.start_pose


def test_path_width_range():
    config = Config(path_width=40, path_width_max=60)
    track = TrackGenerator(config, np.random.default_rng(3)).generate()
    assert 40 <= track.path_width <= 60


def test_track_geometry_and_walls(generated_track):
    geometry = generated_track.geometry()
    assert geometry["start"] == generated_track.start_pose.position.as_tuple()
    assert len(geometry["centerline"]) == len(generated_track.centerline)
    walls = generated_track.wall_segments
    assert walls.shape == (len(generated_track.left_border) + len(generated_track.right_border), 4)


def test_separated_square_becomes_its_own_hull(rng):
    square = [Vec2(100, 100), Vec2(300, 100), Vec2(300, 300), Vec2(100, 300)]
    points, iterations, _ = push_apart(square, 80, BOUNDS, 100, rng)
    assert points == square
    assert iterations == 0
    hull = concave_hull(points, Config().hull_difficulty)
    assert hull[0] == hull[-1]
    assert len(hull) == 5
    assert set(hull) == set(square)
