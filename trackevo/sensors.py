"""
Ray sensors. A fan stores only each ray's angle relative to the car heading; the
absolute directions are derived from the heading whenever the fan is cast.
"""

import math

import numpy as np

from .geometry import cast_rays

NO_HIT = -1.0

# 7 rays, 15 deg apart: the input layer of the network genome
NETWORK_RAY_ANGLES = tuple(math.radians(a) for a in range(-45, 46, 15))
# 9 rays, 10 deg apart, used by the heuristic and angle-genome drivers
HEURISTIC_RAY_ANGLES = tuple(math.radians(a) for a in range(-45, 36, 10))


class RayFan:
    def __init__(self, offsets):
        self.offsets = np.array(offsets, dtype=np.float64)

    def __len__(self):
        return len(self.offsets)

    def directions(self, heading):
        return heading + self.offsets

    def cast(self, x, y, heading, wall_segments):
        """
        Nearest wall distance per ray (-1 when the ray hits nothing) and the hit
        points, None for rays without a hit.
        """
        distances, hx, hy = cast_rays(x, y, self.directions(heading), wall_segments)
        points = [None if d == NO_HIT else (float(px), float(py)) for d, px, py in zip(distances, hx, hy)]
        return [float(d) for d in distances], points

    def halves(self, distances):
        """(left, right) clearance sums; the middle ray of an odd fan counts for neither."""
        n = len(distances)
        left = sum(d for d in distances[:n // 2] if d != NO_HIT)
        right = sum(d for d in distances[(n + 1) // 2:] if d != NO_HIT)
        return left, right
