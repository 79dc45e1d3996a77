import os
import math

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np
import pytest

from trackevo.config import Config
from trackevo.geometry import Vec2
from trackevo.raster import Circuit
from trackevo.track import StartPose, Track, TrackGenerator, TrackQuality, closed_length, offset_borders

RING_CENTER = Vec2(400.0, 300.0)
RING_RADIUS = 200.0
RING_WIDTH = 40.0


def make_track(centerline, path_width, border_segments=50):
    centerline = tuple(centerline)
    left, right = offset_borders(centerline, path_width, border_segments)
    return Track(
        points=centerline,
        hull=centerline + (centerline[0],),
        centerline=centerline,
        path_width=path_width,
        left_border=tuple(left),
        right_border=tuple(right),
        length=closed_length(centerline),
        start_pose=StartPose(centerline[0], (centerline[1] - centerline[0]).heading()),
        quality=TrackQuality(1, 0, True, 0, True, 0),
    )


def ring_centerline(center=RING_CENTER, radius=RING_RADIUS, n=64):
    # Starts at the rightmost point and runs downwards on screen (y grows down)
    return [center + Vec2.from_angle(2 * math.pi * k / n, radius) for k in range(n)]


@pytest.fixture
def config():
    return Config(population_size=6, car_time_to_live=40, generations_per_track=2, selection_top_k=3)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture(scope="session")
def ring_track():
    return make_track(ring_centerline(), RING_WIDTH)


@pytest.fixture(scope="session")
def ring_circuit(ring_track):
    return Circuit.from_track(ring_track, Config())


@pytest.fixture(scope="session")
def generated_track():
    return TrackGenerator(Config(), np.random.default_rng(7)).generate()
