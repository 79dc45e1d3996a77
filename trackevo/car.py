"""
Simulated car: kinematics, crash detection, laps, scoring and the drive policies.
"""

import math
from collections import deque
from enum import Enum

from .errors import ConfigurationError, GenomeMismatchError, MissingMaskError, PolicyOutputError, SteeringError
from .genome import AngleGenome, NetworkGenome
from .geometry import Vec2
from .sensors import HEURISTIC_RAY_ANGLES, NETWORK_RAY_ANGLES, NO_HIT, RayFan

BASIC_TURN_DEG = 8
MAX_PERCENTAGE_TURN_DEG = 40
NETWORK_TURN_DEG = 10
NETWORK_SPEED_STEP = 1.0


class DriveMode(Enum):
    BASIC = "BASIC"
    PERCENTAGE = "PERCENTAGE"
    GENOME_ANGLE = "DNA"
    GENOME_NETWORK = "NN"


class Steer(Enum):
    LEFT = -1
    NEUTRAL = 0
    RIGHT = 1


class Throttle(Enum):
    ACCELERATE = 1
    NEUTRAL = 0
    DECELERATE = -1


_STEER_ORDER = (Steer.LEFT, Steer.NEUTRAL, Steer.RIGHT)
_THROTTLE_ORDER = (Throttle.ACCELERATE, Throttle.NEUTRAL, Throttle.DECELERATE)


def ray_offsets_for(mode):
    return NETWORK_RAY_ANGLES if mode is DriveMode.GENOME_NETWORK else HEURISTIC_RAY_ANGLES


def _unique_argmax(values):
    best = max(values)
    if math.isnan(best) or any(math.isnan(v) for v in values) or values.count(best) != 1:
        raise PolicyOutputError(f"No unique maximum in network output {values}")
    return values.index(best)


def decode_network_output(outputs):
    """Map the 6 network outputs to a (Steer, Throttle) command."""
    values = [float(v) for v in outputs]
    if len(values) != 6:
        raise PolicyOutputError(f"Expected 6 network outputs, got {len(values)}")
    return _STEER_ORDER[_unique_argmax(values[:3])], _THROTTLE_ORDER[_unique_argmax(values[3:])]


class Car:
    def __init__(self, config, position, heading, genome=None, drive_mode=DriveMode.GENOME_NETWORK,
                 color=(255, 255, 255)):
        if drive_mode is DriveMode.GENOME_ANGLE and not isinstance(genome, AngleGenome):
            raise GenomeMismatchError("GENOME_ANGLE driving needs an AngleGenome")
        if drive_mode is DriveMode.GENOME_NETWORK:
            if not isinstance(genome, NetworkGenome):
                raise GenomeMismatchError("GENOME_NETWORK driving needs a NetworkGenome")
            if genome.net.topology[0] != len(NETWORK_RAY_ANGLES):
                raise ConfigurationError(
                    f"Network takes {genome.net.topology[0]} inputs but the car has {len(NETWORK_RAY_ANGLES)} rays")

        self.config = config
        self.genome = genome
        self.drive_mode = drive_mode
        self.color = color

        self.pos = position
        self.heading = heading
        self.speed = config.initial_car_speed
        self.rays = RayFan(ray_offsets_for(drive_mode))
        self.sensor_distances = [NO_HIT] * len(self.rays)
        self.sensor_points = [None] * len(self.rays)

        self.crashed = False
        self.time_to_live = config.car_time_to_live
        self.traveled_distance = 0.0
        self.lap = 0
        self.score = 0.0
        self.trail = deque([position], maxlen=config.trail_length)
        self._last_trail_pos = position
        self._diagonal = math.hypot(config.canvas_width, config.canvas_height)

    @property
    def velocity(self):
        return Vec2.from_angle(self.heading, self.speed)

    def turn(self, angle_deg):
        # rays follow automatically, they are stored relative to the heading
        self.heading += math.radians(angle_deg)

    def turn_by_percentage(self, percentage):
        if not -1 <= percentage <= 1:
            raise SteeringError(f"Turn percentage {percentage} outside [-1, 1]")
        self.turn(percentage * MAX_PERCENTAGE_TURN_DEG)

    def change_speed(self, delta):
        self.speed = min(max(self.speed + delta, self.config.car_min_speed), self.config.car_max_speed)

    def crash(self):
        self.crashed = True

    def update(self, circuit):
        """Advance one tick on the given circuit (track, mask and scoring surface)."""
        if self.crashed:
            return
        if circuit is None or circuit.mask is None:
            raise MissingMaskError("Car update needs a drivable mask")
        cfg = self.config

        moved = self.pos + self.velocity
        left_canvas = not (0 <= moved.x <= cfg.canvas_width and 0 <= moved.y <= cfg.canvas_height)
        self.pos = moved.clamped(0, 0, cfg.canvas_width, cfg.canvas_height)
        self._record_trail()

        self.time_to_live -= 1
        if self.time_to_live <= 0 or left_canvas:
            self.crash()
            return

        if not circuit.mask.is_drivable(self.pos.x, self.pos.y):
            self.crash()
            return

        progress = circuit.surface.score_at(self.pos.x, self.pos.y)
        if progress is not None:
            self.score += progress

        lap = int(self.traveled_distance // circuit.track.length)
        if lap > self.lap:
            self.lap = lap
            self.change_speed(cfg.lap_speed_boost)

        self.sense(circuit.track)
        self.drive()

    def _record_trail(self):
        step = self.pos.dist(self._last_trail_pos)
        if step > self.config.trail_min_step:
            self.traveled_distance += step
            self.trail.append(self.pos)
            self._last_trail_pos = self.pos

    def sense(self, track):
        self.sensor_distances, self.sensor_points = self.rays.cast(
            self.pos.x, self.pos.y, self.heading, track.wall_segments)

    def drive(self):
        if self.drive_mode is DriveMode.BASIC:
            self._turn_towards_clearance(BASIC_TURN_DEG)
        elif self.drive_mode is DriveMode.PERCENTAGE:
            self._percentage_drive()
        elif self.drive_mode is DriveMode.GENOME_ANGLE:
            self._turn_towards_clearance(self.genome.turn_angle)
        elif self.drive_mode is DriveMode.GENOME_NETWORK:
            self._network_drive()

    def _turn_towards_clearance(self, angle_deg):
        left, right = self.rays.halves(self.sensor_distances)
        if right > left:
            self.turn(angle_deg)
        elif left > right:
            self.turn(-angle_deg)

    def _percentage_drive(self):
        left, right = self.rays.halves(self.sensor_distances)
        total = left + right
        if total <= 0:
            return
        self.turn_by_percentage(right / total)
        self.turn_by_percentage(-left / total)

    def network_inputs(self):
        return [d / self._diagonal if d != NO_HIT else NO_HIT for d in self.sensor_distances]

    def _network_drive(self):
        steer, throttle = decode_network_output(self.genome.outputs(self.network_inputs()))
        self.turn(steer.value * NETWORK_TURN_DEG)
        self.change_speed(throttle.value * NETWORK_SPEED_STEP)

    def telemetry(self):
        return {
            "pos": self.pos.as_tuple(),
            "heading": self.heading,
            "crashed": self.crashed,
            "color": self.color,
            "sensor_points": list(self.sensor_points),
            "trail": [p.as_tuple() for p in self.trail],
            "lap": self.lap,
            "score": self.score,
            "speed": self.speed,
        }
