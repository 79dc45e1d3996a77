"""
2D vectors and the intersection tests shared by the track pipeline and the sensors.
"""

import math
from dataclasses import dataclass

import numpy as np

EPSILON = 1e-9


@dataclass(frozen=True)
class Vec2:
    x: float
    y: float

    @classmethod
    def from_angle(cls, angle, length=1.0):
        return cls(math.cos(angle) * length, math.sin(angle) * length)

    def __add__(self, other):
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other):
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, k):
        return Vec2(self.x * k, self.y * k)

    __rmul__ = __mul__

    def __truediv__(self, k):
        return Vec2(self.x / k, self.y / k)

    def __neg__(self):
        return Vec2(-self.x, -self.y)

    def __iter__(self):
        yield self.x
        yield self.y

    def dot(self, other):
        return self.x * other.x + self.y * other.y

    def cross(self, other):
        return self.x * other.y - self.y * other.x

    def length(self):
        return math.hypot(self.x, self.y)

    def dist(self, other):
        return math.hypot(self.x - other.x, self.y - other.y)

    def heading(self):
        return math.atan2(self.y, self.x)

    def normalized(self):
        length = self.length()
        if length < EPSILON:
            return Vec2(0.0, 0.0)
        return Vec2(self.x / length, self.y / length)

    def with_length(self, length):
        return self.normalized() * length

    def rotated(self, angle):
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        return Vec2(self.x * cos_a - self.y * sin_a, self.x * sin_a + self.y * cos_a)

    def clamped(self, min_x, min_y, max_x, max_y):
        return Vec2(min(max(self.x, min_x), max_x), min(max(self.y, min_y), max_y))

    def is_close(self, other, tol=1e-6):
        return abs(self.x - other.x) <= tol and abs(self.y - other.y) <= tol

    def as_tuple(self):
        return (self.x, self.y)


def angle_between(v1, v2):
    """Unsigned angle in [0, pi] between two free vectors."""
    l1 = v1.length()
    l2 = v2.length()
    if l1 < EPSILON or l2 < EPSILON:
        return 0.0
    c = max(-1.0, min(1.0, v1.dot(v2) / (l1 * l2)))
    return math.acos(c)


def segment_intersection(a, b, c, d):
    """Intersection point of segments AB and CD, or None. Parallel segments never intersect."""
    r = b - a
    s = d - c
    denom = r.cross(s)
    if abs(denom) < EPSILON:
        return None
    qp = c - a
    t = qp.cross(s) / denom
    u = qp.cross(r) / denom
    if 0 <= t <= 1 and 0 <= u <= 1:
        return a + r * t
    return None


def segments_intersect(a, b, c, d):
    return segment_intersection(a, b, c, d) is not None


def polyline_segments(points, closed=True):
    """(M, 4) array of [ax, ay, bx, by] rows for consecutive vertices."""
    n = len(points)
    count = n if closed else n - 1
    seg = np.empty((max(count, 0), 4), dtype=np.float64)
    for i in range(count):
        p = points[i]
        q = points[(i + 1) % n]
        seg[i] = (p.x, p.y, q.x, q.y)
    return seg


def cast_rays(ox, oy, angles, seg_array):
    """
    Cast N rays from (ox, oy) against M wall segments using numpy broadcasting.

    Returns (distances, hit_x, hit_y), each (N,). Rays without a hit get distance -1
    and NaN hit coordinates.
    """
    angles = np.asarray(angles, dtype=np.float64)
    n_rays = len(angles)
    distances = np.full(n_rays, -1.0)
    hit_x = np.full(n_rays, np.nan)
    hit_y = np.full(n_rays, np.nan)
    if len(seg_array) == 0:
        return distances, hit_x, hit_y

    cos_a = np.cos(angles)                              # (N,)
    sin_a = np.sin(angles)                              # (N,)
    seg = np.asarray(seg_array, dtype=np.float64)       # (M, 4)

    sx = seg[:, 2] - seg[:, 0]                          # (M,) wall dx
    sy = seg[:, 3] - seg[:, 1]                          # (M,) wall dy
    dox = seg[:, 0] - ox                                # (M,) origin-to-wall x
    doy = seg[:, 1] - oy                                # (M,) origin-to-wall y

    # (N, M) via broadcasting; u runs along the ray, t along the wall
    denom = cos_a[:, None] * sy[None, :] - sin_a[:, None] * sx[None, :]
    u_num = dox * sy - doy * sx                         # (M,) ray-independent
    t_num = dox[None, :] * sin_a[:, None] - doy[None, :] * cos_a[:, None]

    nonzero = denom != 0
    safe_denom = np.where(nonzero, denom, 1.0)
    u = u_num[None, :] / safe_denom
    t = t_num / safe_denom

    valid = nonzero & (t > 0) & (t < 1) & (u > 0)
    if not valid.any():
        return distances, hit_x, hit_y

    u = np.where(valid, u, np.inf)
    best = np.min(u, axis=1)
    found = np.isfinite(best)
    distances[found] = best[found]
    hit_x[found] = ox + cos_a[found] * best[found]
    hit_y[found] = oy + sin_a[found] * best[found]
    return distances, hit_x, hit_y
