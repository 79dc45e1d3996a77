"""
Procedurally generated racetracks and a population of cars that learn to drive them.
"""

from .config import Config
from .errors import (ConfigurationError, GenomeMismatchError, MissingMaskError, PolicyOutputError,
                     SteeringError, TrackevoError, TrackGenerationError)
from .track import Track, TrackGenerator
from .raster import Circuit, DrivableMask, ScoringSurface
from .genome import AngleGenome, NetworkGenome
from .car import Car, DriveMode
from .pool import Pool

__version__ = "0.1.0"
