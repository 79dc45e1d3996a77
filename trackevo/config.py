"""
Simulation configuration: default constants plus the immutable Config value
that every generator, pool and car receives at construction.
"""

import json
import dataclasses
from dataclasses import dataclass

from .errors import ConfigurationError

# ---------------- CONFIG ----------------
WIDTH, HEIGHT = 800, 600
MARGIN = 50                 # seed points never closer than this to the canvas edge
INITIAL_POINTS = 8
MAX_INITIAL_POINTS = 12
MIN_POINT_SEPARATION = 80
HULL_DIFFICULTY = 500       # 0 very hard (concave hull) - inf very easy (convex hull)
MIN_HULL_ANGLE_DEG = 60
PATH_WIDTH = 50
MUTATION_RATE = 0.1
CAR_MIN_SPEED = 1.0
CAR_MAX_SPEED = 10.0
CAR_INITIAL_SPEED = 2.0
CAR_TIME_TO_LIVE = 1500     # ticks
POPULATION = 100
GENERATIONS_PER_TRACK = 25
REFERENCE_GROUP = False
HEURISTIC_GROUP = False
OFF_TRACK_COLOR = (42, 128, 62)
ROAD_COLOR = (34, 34, 38)

PUSH_APART_ITERATIONS = 100
ANGLE_FIX_ITERATIONS = 10
CURVE_SUBDIVISIONS = 5
BORDER_SEGMENTS = 50
BORDER_REPAIR_WINDOW = 10
BORDER_REPAIR_PASSES = 100
MAX_TRACK_ATTEMPTS = 100
SELECTION_TOP_K = 10
TRAIL_LENGTH = 200
TRAIL_MIN_STEP = 50
LAP_SPEED_BOOST = 1.0
# ---------------------------------------

# camelCase aliases accepted by Config.from_dict
_CAMEL_KEYS = {
    "canvasWidth": "canvas_width",
    "canvasHeight": "canvas_height",
    "initialPointCount": "initial_point_count",
    "maxInitialPointCount": "max_initial_point_count",
    "minPointSeparation": "min_point_separation",
    "hullDifficulty": "hull_difficulty",
    "minHullAngleDeg": "min_hull_angle_deg",
    "pathWidth": "path_width",
    "mutationRate": "mutation_rate",
    "carMinSpeed": "car_min_speed",
    "carMaxSpeed": "car_max_speed",
    "initialCarSpeed": "initial_car_speed",
    "carTimeToLive": "car_time_to_live",
    "populationSize": "population_size",
    "generationsPerTrack": "generations_per_track",
    "enableReferenceGroup": "enable_reference_group",
    "poolSetReferenceGroup": "enable_reference_group",
    "enableHeuristicGroup": "enable_heuristic_group",
    "offTrackColor": "off_track_color",
}


@dataclass(frozen=True)
class Config:
    canvas_width: int = WIDTH
    canvas_height: int = HEIGHT
    margin: float = MARGIN
    initial_point_count: int = INITIAL_POINTS
    max_initial_point_count: int = MAX_INITIAL_POINTS
    min_point_separation: float = MIN_POINT_SEPARATION
    hull_difficulty: float = HULL_DIFFICULTY
    min_hull_angle_deg: float = MIN_HULL_ANGLE_DEG
    path_width: float = PATH_WIDTH
    path_width_max: float = None
    mutation_rate: float = MUTATION_RATE
    car_min_speed: float = CAR_MIN_SPEED
    car_max_speed: float = CAR_MAX_SPEED
    initial_car_speed: float = CAR_INITIAL_SPEED
    car_time_to_live: int = CAR_TIME_TO_LIVE
    population_size: int = POPULATION
    generations_per_track: int = GENERATIONS_PER_TRACK
    enable_reference_group: bool = REFERENCE_GROUP
    enable_heuristic_group: bool = HEURISTIC_GROUP
    off_track_color: tuple = OFF_TRACK_COLOR
    road_color: tuple = ROAD_COLOR

    push_apart_iterations: int = PUSH_APART_ITERATIONS
    angle_fix_iterations: int = ANGLE_FIX_ITERATIONS
    curve_subdivisions: int = CURVE_SUBDIVISIONS
    border_segments: int = BORDER_SEGMENTS
    border_repair_window: int = BORDER_REPAIR_WINDOW
    border_repair_passes: int = BORDER_REPAIR_PASSES
    max_track_attempts: int = MAX_TRACK_ATTEMPTS
    selection_top_k: int = SELECTION_TOP_K
    trail_length: int = TRAIL_LENGTH
    trail_min_step: float = TRAIL_MIN_STEP
    lap_speed_boost: float = LAP_SPEED_BOOST

    def __post_init__(self):
        # JSON hands colours over as lists
        object.__setattr__(self, "off_track_color", tuple(int(c) for c in self.off_track_color))
        object.__setattr__(self, "road_color", tuple(int(c) for c in self.road_color))
        self.validate()

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown configuration key: {key!r}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path):
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a JSON object at top level")
        return cls.from_dict(data)

    def replace(self, **changes):
        return dataclasses.replace(self, **changes)

    def validate(self):
        """Raise ConfigurationError for values no track or pool can work with."""
        if self.canvas_width <= 2 * self.margin or self.canvas_height <= 2 * self.margin:
            raise ConfigurationError("Margin leaves no room for points on the canvas")
        if self.initial_point_count < 3:
            raise ConfigurationError("At least 3 seed points are needed to build a hull")
        if self.max_initial_point_count < self.initial_point_count:
            raise ConfigurationError("max_initial_point_count is below initial_point_count")
        if self.path_width <= 0:
            raise ConfigurationError("path_width must be positive")
        if self.path_width_max is not None and self.path_width_max < self.path_width:
            raise ConfigurationError("path_width_max is below path_width")
        if self.car_min_speed > self.car_max_speed:
            raise ConfigurationError("car_min_speed is above car_max_speed")
        if not self.car_min_speed <= self.initial_car_speed <= self.car_max_speed:
            raise ConfigurationError("initial_car_speed outside [car_min_speed, car_max_speed]")
        if self.car_time_to_live < 1:
            raise ConfigurationError("car_time_to_live must be at least one tick")
        if self.population_size < 1:
            raise ConfigurationError("population_size must be at least 1")
        if self.generations_per_track < 1:
            raise ConfigurationError("generations_per_track must be at least 1")
        if self.selection_top_k < 1:
            raise ConfigurationError("selection_top_k must be at least 1")
        if self.max_track_attempts < 1:
            raise ConfigurationError("max_track_attempts must be at least 1")
        if len(self.off_track_color) != 3 or len(self.road_color) != 3:
            raise ConfigurationError("Colours are RGB triples")
        if self.off_track_color == self.road_color:
            raise ConfigurationError("road_color must differ from off_track_color")
        return self
