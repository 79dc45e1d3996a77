"""
Concave hull of a point cloud.

Starts from the convex hull and keeps "digging" every edge longer than the
concavity threshold towards the best unused inner point, as long as the two new
edges do not cross the hull built so far. A threshold of inf gives the convex hull.
"""

import math

import numpy as np
from scipy.spatial import ConvexHull, QhullError

from .errors import ConfigurationError
from .geometry import segments_intersect

MAX_CONCAVE_ANGLE_COS = math.cos(math.radians(90))


class DegenerateHullError(ValueError):
    """Points are too few or collinear to enclose any area."""


def _cos_at(corner, a, b):
    v1 = a - corner
    v2 = b - corner
    l1 = v1.length()
    l2 = v2.length()
    if l1 == 0 or l2 == 0:
        return -1.0
    return v1.dot(v2) / (l1 * l2)


def _crosses_ring(p, q, ring):
    n = len(ring)
    for i in range(n):
        c = ring[i]
        d = ring[(i + 1) % n]
        if c == p or c == q or d == p or d == q:
            continue
        if segments_intersect(p, q, c, d):
            return True
    return False


def _mid_point(a, b, inner, ring):
    best = None
    max_cos1 = MAX_CONCAVE_ANGLE_COS
    max_cos2 = MAX_CONCAVE_ANGLE_COS
    for p in inner:
        cos1 = _cos_at(a, b, p)
        cos2 = _cos_at(b, a, p)
        if (cos1 > max_cos1 and cos2 > max_cos2
                and not _crosses_ring(a, p, ring) and not _crosses_ring(b, p, ring)):
            max_cos1 = cos1
            max_cos2 = cos2
            best = p
    return best


def convex_ring(points):
    """Convex hull vertices in counter-clockwise order (open ring)."""
    if len(points) < 3:
        raise DegenerateHullError(f"Need at least 3 distinct points, got {len(points)}")
    arr = np.array([(p.x, p.y) for p in points], dtype=np.float64)
    try:
        hull = ConvexHull(arr)
    except QhullError as e:
        raise DegenerateHullError(str(e)) from e
    return [points[i] for i in hull.vertices]


def concave_hull(points, concavity):
    """
    Closed hull polygon of the points (first vertex repeated as the last one).

    Smaller concavity digs deeper into the cloud and gives a more jagged outline.
    """
    if not points:
        raise ConfigurationError("Can't compute a hull with no points")

    unique = []
    for p in points:
        if p not in unique:
            unique.append(p)

    ring = convex_ring(unique)
    inner = [p for p in unique if p not in ring]

    if math.isfinite(concavity) and inner:
        max_sq_len = concavity * concavity
        dug = True
        while dug and inner:
            dug = False
            i = 0
            while i < len(ring):
                a = ring[i]
                b = ring[(i + 1) % len(ring)]
                d = b - a
                if d.dot(d) >= max_sq_len:
                    mid = _mid_point(a, b, inner, ring)
                    if mid is not None:
                        ring.insert(i + 1, mid)
                        inner.remove(mid)
                        dug = True
                i += 1

    return ring + [ring[0]]
