"""
Procedural racetrack generation.

random points -> push apart -> concave hull -> widen sharp angles -> smooth
centerline -> start pose -> borders -> border repair -> cross-border check.

Hull self-intersections and crossing borders reject the whole attempt; generation
then starts over from new random points, up to a fixed number of attempts.
Based on http://blog.meltinglogic.com/2013/12/how-to-generate-procedural-racetracks/
"""

import math
import logging
from dataclasses import dataclass
from functools import cached_property

import numpy as np

from .curve import smooth_closed_curve
from .errors import TrackGenerationError
from .geometry import (Vec2, angle_between, polyline_segments, segment_intersection,
                       segments_intersect)
from .hull import DegenerateHullError, concave_hull

logger = logging.getLogger(__name__)


class TrackRejected(Exception):
    """Raised inside a generation attempt to throw the whole attempt away."""


@dataclass(frozen=True)
class StartPose:
    position: Vec2
    heading: float


@dataclass(frozen=True)
class TrackQuality:
    attempts: int
    push_apart_iterations: int
    push_apart_converged: bool
    angle_iterations: int
    angles_converged: bool
    border_repairs: int


@dataclass(frozen=True)
class Track:
    points: tuple
    hull: tuple          # closed: hull[0] == hull[-1]
    centerline: tuple    # open vertex list of a closed curve, index 0 is the start
    path_width: float
    left_border: tuple
    right_border: tuple
    length: float
    start_pose: StartPose
    quality: TrackQuality

    @cached_property
    def wall_segments(self):
        """Both borders as one (M, 4) segment array for ray casting."""
        return np.vstack([polyline_segments(self.left_border), polyline_segments(self.right_border)])

    def geometry(self):
        return {
            "hull": [p.as_tuple() for p in self.hull],
            "centerline": [p.as_tuple() for p in self.centerline],
            "left_border": [p.as_tuple() for p in self.left_border],
            "right_border": [p.as_tuple() for p in self.right_border],
            "path_width": self.path_width,
            "start": self.start_pose.position.as_tuple(),
            "start_heading": self.start_pose.heading,
        }


def point_bounds(config):
    m = config.margin
    return (m, m, config.canvas_width - m, config.canvas_height - m)


def seed_points(config, rng):
    min_x, min_y, max_x, max_y = point_bounds(config)
    n = int(rng.integers(config.initial_point_count, config.max_initial_point_count + 1))
    return [Vec2(float(rng.uniform(min_x, max_x)), float(rng.uniform(min_y, max_y))) for _ in range(n)]


def _push_apart_once(points, min_dist, bounds, rng):
    pushed = 0
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            p1 = points[i]
            p2 = points[j]
            d = p2 - p1
            dist = d.length()
            if dist >= min_dist:
                continue
            pushed += 1
            if dist < 1e-9:
                direction = Vec2.from_angle(float(rng.uniform(0, 2 * math.pi)))
            else:
                direction = d / dist
            half = (min_dist - dist) / 2
            points[i] = (p1 - direction * half).clamped(*bounds)
            points[j] = (p2 + direction * half).clamped(*bounds)
    return pushed


def push_apart(points, min_dist, bounds, max_iterations, rng):
    """
    Repel every pair closer than min_dist by half the deficit each, until no pair
    is too close or max_iterations passes were made.
    Returns (points, iterations, converged).
    """
    points = list(points)
    for iteration in range(max_iterations):
        if _push_apart_once(points, min_dist, bounds, rng) == 0:
            return points, iteration, True
    logger.warning("Points still too close after %d push-apart passes", max_iterations)
    return points, max_iterations, False


def _fix_hull_angles_once(ring, min_angle, bounds):
    fixed = 0
    n = len(ring)
    for i in range(n):
        previous = ring[i - 1]
        current = ring[i]
        next_index = (i + 1) % n
        vp = previous - current
        vn = ring[next_index] - current
        angle = angle_between(vp, vn)
        if angle >= min_angle:
            continue
        fixed += 1
        # Rotate current->next away from current->previous, keeping its length
        diff = min_angle - angle
        rotation = diff if vp.cross(vn) >= 0 else -diff
        ring[next_index] = (current + vn.rotated(rotation)).clamped(*bounds)
    return fixed


def hull_angles(hull):
    ring = list(hull[:-1])
    n = len(ring)
    return [angle_between(ring[i - 1] - ring[i], ring[(i + 1) % n] - ring[i]) for i in range(n)]


def fix_hull_angles(hull, min_angle, bounds, max_iterations):
    """
    Widen every hull angle below min_angle (radians).
    Takes and returns a closed hull. Returns (hull, iterations, converged).
    """
    ring = list(hull[:-1])
    for iteration in range(max_iterations):
        if _fix_hull_angles_once(ring, min_angle, bounds) == 0:
            return ring + [ring[0]], iteration, True
    logger.warning("Hull angles still below %.1f deg after %d passes",
                   math.degrees(min_angle), max_iterations)
    return ring + [ring[0]], max_iterations, False


def has_self_intersection(polygon):
    """True when two edges of a closed polygon (first == last) that share no endpoint intersect."""
    m = len(polygon) - 1
    for i in range(m):
        a, b = polygon[i], polygon[i + 1]
        for j in range(i + 2, m):
            if i == 0 and j == m - 1:
                continue
            if segments_intersect(a, b, polygon[j], polygon[j + 1]):
                return True
    return False


def choose_start(centerline, rng):
    """Rotate the centerline so a random vertex comes first, in a random traversal direction."""
    n = len(centerline)
    start = int(rng.integers(1, n - 1))
    if rng.random() < 0.5:
        ordered = list(centerline[start:]) + list(centerline[:start])
    else:
        ordered = [centerline[(start - k) % n] for k in range(n)]
    heading = (ordered[1] - ordered[0]).heading()
    return ordered, StartPose(ordered[0], heading)


def closed_length(points):
    n = len(points)
    return sum(points[i].dist(points[(i + 1) % n]) for i in range(n))


def offset_borders(centerline, path_width, segments):
    n = len(centerline)
    half = path_width / 2
    left, right = [], []
    for k in range(segments):
        i = (k * n) // segments
        p = centerline[i]
        direction = (centerline[(i + 1) % n] - centerline[i - 1]).normalized()
        # y grows downwards, so -90 deg is the driver's left
        left.append(p + direction.rotated(-math.pi / 2) * half)
        right.append(p + direction.rotated(math.pi / 2) * half)
    return left, right


def repair_border(border, window, passes):
    """
    Cut small loops out of a closed border.

    For each edge AB, look up to `window` edges ahead for an edge CD crossing it. On
    a hit B moves to the crossing point and the loop vertices up to C are dropped, so
    the border runs A -> X -> D. Returns (border, repairs).
    """
    pts = list(border) + [border[0]]
    repairs = 0
    for _ in range(passes):
        changed = False
        i = 0
        while i < len(pts) - 1:
            a, b = pts[i], pts[i + 1]
            hit = None
            for j in range(i + 2, min(i + 2 + window, len(pts) - 1)):
                c, d = pts[j], pts[j + 1]
                if d == a or c == b:
                    continue
                x = segment_intersection(a, b, c, d)
                if x is not None:
                    hit = (j, x)
                    break
            if hit is None:
                i += 1
                continue
            j, x = hit
            pts[i + 1] = x
            del pts[i + 2:j + 1]
            repairs += 1
            changed = True
        if not changed:
            break
    return pts[:-1], repairs


def borders_cross(left, right):
    nl, nr = len(left), len(right)
    for i in range(nl):
        a, b = left[i], left[(i + 1) % nl]
        for j in range(nr):
            if segments_intersect(a, b, right[j], right[(j + 1) % nr]):
                return True
    return False


def attempt(max_retries, generate_fn):
    """Call generate_fn(attempt_number) until it stops rejecting, at most max_retries times."""
    for n in range(1, max_retries + 1):
        try:
            return generate_fn(n)
        except TrackRejected as e:
            logger.debug("Track attempt %d rejected: %s", n, e)
    raise TrackGenerationError(
        f"No valid track after {max_retries} attempts; check margins, point count and path width"
    )


class TrackGenerator:
    def __init__(self, config, rng):
        self.config = config
        self.rng = rng

    def generate(self):
        track = attempt(self.config.max_track_attempts, self._generate_once)
        logger.info("Track generated after %d attempt(s): %d centerline points, length %.0f",
                    track.quality.attempts, len(track.centerline), track.length)
        return track

    def _path_width(self):
        cfg = self.config
        if cfg.path_width_max is not None and cfg.path_width_max > cfg.path_width:
            return float(self.rng.uniform(cfg.path_width, cfg.path_width_max))
        return float(cfg.path_width)

    def _generate_once(self, attempt_number):
        cfg = self.config
        bounds = point_bounds(cfg)

        points = seed_points(cfg, self.rng)
        points, push_iterations, push_ok = push_apart(
            points, cfg.min_point_separation, bounds, cfg.push_apart_iterations, self.rng)

        try:
            hull = concave_hull(points, cfg.hull_difficulty)
        except DegenerateHullError as e:
            raise TrackRejected(f"degenerate hull ({e})") from e
        if len(hull) < 4:
            raise TrackRejected("hull has fewer than 3 vertices")

        hull, angle_iterations, angles_ok = fix_hull_angles(
            hull, math.radians(cfg.min_hull_angle_deg), bounds, cfg.angle_fix_iterations)
        if has_self_intersection(hull):
            raise TrackRejected("hull intersects itself")

        centerline = smooth_closed_curve(hull[:-1], cfg.curve_subdivisions)
        centerline, start_pose = choose_start(centerline, self.rng)
        length = closed_length(centerline)

        path_width = self._path_width()
        left, right = offset_borders(centerline, path_width, cfg.border_segments)
        left, left_repairs = repair_border(left, cfg.border_repair_window, cfg.border_repair_passes)
        right, right_repairs = repair_border(right, cfg.border_repair_window, cfg.border_repair_passes)
        if left_repairs or right_repairs:
            logger.debug("Border repairs: left %d, right %d", left_repairs, right_repairs)
        if len(left) < 3 or len(right) < 3:
            raise TrackRejected("border collapsed during repair")
        if borders_cross(left, right):
            raise TrackRejected("left and right borders cross")

        quality = TrackQuality(
            attempts=attempt_number,
            push_apart_iterations=push_iterations,
            push_apart_converged=push_ok,
            angle_iterations=angle_iterations,
            angles_converged=angles_ok,
            border_repairs=left_repairs + right_repairs,
        )
        return Track(
            points=tuple(points),
            hull=tuple(hull),
            centerline=tuple(centerline),
            path_width=path_width,
            left_border=tuple(left),
            right_border=tuple(right),
            length=length,
            start_pose=start_pose,
            quality=quality,
        )
