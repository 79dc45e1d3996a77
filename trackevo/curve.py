"""
Closed-curve smoothing by repeated subdivision.

Every round keeps the existing vertices and inserts between each consecutive pair
(b, c) the Catmull-Rom point at t=0.5 computed from the neighbours (a, b, c, d),
so each round doubles the vertex count.
"""

from .geometry import Vec2


def _catmull_rom(p0, p1, p2, p3, t):
    t2 = t * t
    t3 = t2 * t
    f1 = -0.5 * t3 + t2 - 0.5 * t
    f2 = 1.5 * t3 - 2.5 * t2 + 1.0
    f3 = -1.5 * t3 + 2.0 * t2 + 0.5 * t
    f4 = 0.5 * t3 - 0.5 * t2
    return p0 * f1 + p1 * f2 + p2 * f3 + p3 * f4


def subdivide_closed(points):
    n = len(points)
    curve = []
    for i in range(n):
        a = points[(i - 1) % n]
        b = points[i]
        c = points[(i + 1) % n]
        d = points[(i + 2) % n]
        mid = Vec2(_catmull_rom(a.x, b.x, c.x, d.x, 0.5), _catmull_rom(a.y, b.y, c.y, d.y, 0.5))
        curve.append(b)
        curve.append(mid)
    return curve


def smooth_closed_curve(points, rounds):
    """Open vertex list of the smoothed closed curve (the last vertex connects back to the first)."""
    if len(points) < 3:
        raise ValueError("A closed curve needs at least 3 points")
    curve = list(points)
    for _ in range(rounds):
        curve = subdivide_closed(curve)
    return curve
