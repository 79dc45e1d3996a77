"""
Population of cars and the genetic loop that breeds their genomes.

One generation runs until every car has crashed. The genomes of the next
generation come from the best cars of this one; every `generations_per_track`
generations the track is thrown away and a new one is generated.
"""

import logging
from dataclasses import asdict, dataclass

from .car import Car, DriveMode
from .errors import ConfigurationError, GenomeMismatchError
from .genome import AngleGenome, NetworkGenome, genome_kind, random_angle_genome, random_network_genome
from .geometry import Vec2
from .raster import Circuit

logger = logging.getLogger(__name__)

EVOLVING_COLOR = (255, 255, 255)
REFERENCE_COLOR = (41, 206, 46)
HEURISTIC_COLORS = {
    DriveMode.BASIC: (255, 170, 0),
    DriveMode.PERCENTAGE: (0, 190, 255),
}


@dataclass(frozen=True)
class GenerationStats:
    generation: int
    best_score: float
    mean_score: float
    best_lap: int
    best_distance: float
    turn_angles: tuple = None  # (min, mean, max) for angle genomes


@dataclass
class DriveStats:
    """Running figures for one heuristic drive mode, kept across generations."""
    lap: int = 0
    distance: float = 0.0
    speed: float = 0.0
    max_speed: float = 0.0
    crash_speed: float = 0.0
    score: float = 0.0

    def update(self, car):
        self.max_speed = max(self.max_speed, car.speed)
        if car.crashed:
            self.crash_speed = car.speed
        self.lap = car.lap
        self.distance = car.traveled_distance
        self.speed = car.speed
        self.score = car.score


class Pool:
    def __init__(self, config, rng, genome="network", circuit=None, circuit_factory=None):
        if genome == "network":
            self.drive_mode = DriveMode.GENOME_NETWORK
        elif genome == "angle":
            self.drive_mode = DriveMode.GENOME_ANGLE
        else:
            raise ConfigurationError(f"Unknown genome variant {genome!r}, expected 'network' or 'angle'")

        self.config = config
        self.rng = rng
        self.size = config.population_size
        self._circuit_factory = circuit_factory or (lambda: Circuit.build(config, rng))

        self.genomes = self._initial_genomes()
        self.generation = 1
        self.epoch = 1
        self.generations_left = config.generations_per_track
        self.history = []
        self.cars = []
        self.reference_cars = []
        self.all_crashed = False
        self.heuristic_cars = []
        self.heuristic_stats = {}
        if config.enable_heuristic_group:
            self.heuristic_stats = {mode: DriveStats() for mode in HEURISTIC_COLORS}

        self.circuit = circuit if circuit is not None else self._circuit_factory()
        self.reset()

    def _initial_genomes(self):
        if self.drive_mode is DriveMode.GENOME_NETWORK:
            return [random_network_genome(self.rng) for _ in range(self.size)]
        return [random_angle_genome(self.rng) for _ in range(self.size)]

    def _start_offset(self):
        direction = Vec2(float(self.rng.uniform(-1, 1)), float(self.rng.uniform(-1, 1)))
        magnitude = float(self.rng.uniform(1, max(1.0, self.circuit.track.path_width / 2)))
        return direction.with_length(magnitude)

    def reset(self, circuit=None):
        """Respawn every car at the start of the (possibly new) circuit from the current genomes."""
        if circuit is not None:
            self.circuit = circuit
        if len(self.genomes) != self.size:
            raise GenomeMismatchError(f"Pool of {self.size} cars got {len(self.genomes)} genomes")
        genome_kind(self.genomes)

        start = self.circuit.track.start_pose
        self.cars = []
        for genome in self.genomes:
            position = start.position
            if self.drive_mode is DriveMode.GENOME_ANGLE:
                position = position + self._start_offset()
            self.cars.append(Car(self.config, position, start.heading, genome, self.drive_mode, EVOLVING_COLOR))

        self.reference_cars = []
        if self.config.enable_reference_group:
            for _ in range(self.size):
                self.reference_cars.append(Car(
                    self.config, start.position + self._start_offset(), start.heading,
                    random_angle_genome(self.rng), DriveMode.GENOME_ANGLE, REFERENCE_COLOR))

        self.heuristic_cars = []
        if self.heuristic_stats:
            for mode, color in HEURISTIC_COLORS.items():
                self.heuristic_cars.append(Car(self.config, start.position, start.heading, None, mode, color))

    def all_cars(self):
        return self.cars + self.reference_cars + self.heuristic_cars

    def tick(self):
        """Advance every car one step. Returns True when this tick ended the generation."""
        for car in self.all_cars():
            car.update(self.circuit)
        for car in self.heuristic_cars:
            self.heuristic_stats[car.drive_mode].update(car)
        self.all_crashed = all(car.crashed for car in self.all_cars())
        if not self.all_crashed:
            return False
        self.end_of_generation()
        self._next_generation()
        return True

    def ranked(self):
        return sorted(self.cars, key=lambda c: c.score, reverse=True)

    def end_of_generation(self):
        """Rank the cars and breed the genomes of the next generation."""
        ranked = self.ranked()
        self.history.append(self._stats(ranked))
        top = ranked[:self.config.selection_top_k]
        total_score = sum(c.score for c in top)
        logger.info("Generation %d done, best score %.1f", self.generation, ranked[0].score)

        kind = genome_kind([c.genome for c in ranked])
        if kind is AngleGenome:
            self.genomes = self._next_angle_genomes(top, total_score)
        elif kind is NetworkGenome:
            self.genomes = self._next_network_genomes(ranked[0].genome)
        return self.genomes

    def select_parents(self, top, total_score):
        """
        Roulette-wheel pick of two parents among the ranked top cars.
        The same car can be picked twice.
        """
        if total_score <= 0:
            i, j = self.rng.integers(0, len(top), size=2)
            return top[int(i)], top[int(j)]

        threshold1 = self.rng.uniform(0, total_score)
        threshold2 = self.rng.uniform(0, total_score)
        parent1 = parent2 = None
        acc = 0.0
        for car in top:
            acc += car.score
            if parent1 is None and threshold1 < acc:
                parent1 = car
            if parent2 is None and threshold2 < acc:
                parent2 = car
            if parent1 is not None and parent2 is not None:
                break
        # float rounding can leave a threshold just above the last sum
        return parent1 or top[-1], parent2 or top[-1]

    def _next_angle_genomes(self, top, total_score):
        genomes = []
        for _ in range(self.size):
            parent1, parent2 = self.select_parents(top, total_score)
            child = parent1.genome.mix(parent2.genome)
            child.mutate(self.rng, self.config.mutation_rate)
            genomes.append(child)
        return genomes

    def _next_network_genomes(self, best):
        genomes = []
        for _ in range(self.size):
            child = best.copy()
            child.mutate(self.rng)
            genomes.append(child)
        return genomes

    def _stats(self, ranked):
        scores = [c.score for c in ranked]
        angles = None
        if self.drive_mode is DriveMode.GENOME_ANGLE:
            values = [c.genome.turn_angle for c in ranked]
            angles = (min(values), sum(values) / len(values), max(values))
        return GenerationStats(
            generation=self.generation,
            best_score=scores[0],
            mean_score=sum(scores) / len(scores),
            best_lap=max(c.lap for c in ranked),
            best_distance=max(c.traveled_distance for c in ranked),
            turn_angles=angles,
        )

    def _next_generation(self):
        self.generation += 1
        self.generations_left -= 1
        if self.generations_left <= 0:
            self.regenerate_track()
        else:
            self.reset()

    def regenerate_track(self):
        """Replace the circuit with a freshly generated one and respawn the cars on it."""
        self.epoch += 1
        self.generations_left = self.config.generations_per_track
        logger.info("Epoch %d: generating a new track", self.epoch)
        self.reset(self._circuit_factory())

    def best_car(self):
        return max(self.all_cars(), key=lambda c: c.score)

    def snapshot(self):
        """
        Per-tick output. `all_crashed` stays True from the tick that ended a generation
        until the next tick; the cars listed are already the respawned ones.
        """
        return {
            "generation": self.generation,
            "epoch": self.epoch,
            "all_crashed": self.all_crashed,
            "alive": sum(not c.crashed for c in self.all_cars()),
            "cars": [c.telemetry() for c in self.all_cars()],
            "heuristics": {mode.value: asdict(stats) for mode, stats in self.heuristic_stats.items()},
        }
