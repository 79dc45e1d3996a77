"""
Drivable-area mask and progress scoring.

The track is painted on an off-screen pygame surface over the off-track colour;
every pixel whose colour differs from it is drivable. The scoring surface maps each
drivable pixel to the normalised index of its nearest centerline vertex.
"""

import os
import math
import logging
from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from .errors import MissingMaskError
from .track import TrackGenerator

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame  # noqa: E402

logger = logging.getLogger(__name__)


def _ring_area(points):
    n = len(points)
    return abs(sum(points[i].cross(points[(i + 1) % n]) for i in range(n))) / 2


def render_track(track, config, surface=None):
    """
    Paint the road onto a surface filled with the off-track colour.

    The road is the area between the two walls: the enclosing border is filled with
    the road colour, then the enclosed one is cut back out.
    """
    if surface is None:
        surface = pygame.Surface((config.canvas_width, config.canvas_height))
    surface.fill(config.off_track_color)
    outer, inner = track.left_border, track.right_border
    if _ring_area(inner) > _ring_area(outer):
        outer, inner = inner, outer
    pygame.draw.polygon(surface, config.road_color, [p.as_tuple() for p in outer])
    pygame.draw.polygon(surface, config.off_track_color, [p.as_tuple() for p in inner])
    return surface


class DrivableMask:
    def __init__(self, on_track):
        # indexed [x, y] like pygame.surfarray
        self.on_track = np.asarray(on_track, dtype=bool)
        self.width, self.height = self.on_track.shape

    @classmethod
    def from_surface(cls, surface, off_track_color):
        pixels = pygame.surfarray.array3d(surface)
        off = np.array(off_track_color, dtype=pixels.dtype)
        return cls(np.any(pixels != off, axis=2))

    def in_bounds(self, x, y):
        return 0 <= x < self.width and 0 <= y < self.height

    def is_drivable(self, x, y):
        if not self.in_bounds(x, y):
            return False
        return bool(self.on_track[int(math.floor(x)), int(math.floor(y))])

    def coverage(self):
        return float(self.on_track.mean())


def rasterize(track, config):
    return DrivableMask.from_surface(render_track(track, config), config.off_track_color)


class ScoringSurface:
    def __init__(self, values):
        self.values = values

    @classmethod
    def build(cls, track, mask):
        if mask is None:
            raise MissingMaskError("A drivable mask is required to build the scoring surface")
        centerline = np.array([p.as_tuple() for p in track.centerline], dtype=np.float64)
        xs, ys = np.nonzero(mask.on_track)
        values = np.full(mask.on_track.shape, np.nan, dtype=np.float32)
        if len(xs):
            _, idx = cKDTree(centerline).query(np.column_stack([xs, ys]))
            values[xs, ys] = idx / max(1, len(centerline) - 1)
        return cls(values)

    def score_at(self, x, y):
        """Progress in [0, 1], or None off the drivable area."""
        w, h = self.values.shape
        if not (0 <= x < w and 0 <= y < h):
            return None
        v = self.values[int(math.floor(x)), int(math.floor(y))]
        if np.isnan(v):
            return None
        return float(v)


@dataclass(frozen=True)
class Circuit:
    """One track together with its mask and scoring surface; replaced as a whole."""
    track: object
    mask: DrivableMask
    surface: ScoringSurface

    @classmethod
    def from_track(cls, track, config):
        mask = rasterize(track, config)
        logger.debug("Drivable mask covers %.1f%% of the canvas", mask.coverage() * 100)
        return cls(track, mask, ScoringSurface.build(track, mask))

    @classmethod
    def build(cls, config, rng):
        return cls.from_track(TrackGenerator(config, rng).generate(), config)
