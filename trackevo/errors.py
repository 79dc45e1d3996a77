class TrackevoError(Exception):
    pass


class ConfigurationError(TrackevoError):
    """Configuration the simulation cannot run with."""


class TrackGenerationError(TrackevoError):
    """Track generation kept getting rejected until the attempt budget ran out."""


class MissingMaskError(TrackevoError):
    """A drivable mask was needed (on-track test or score) but none was given."""


class GenomeMismatchError(TrackevoError, TypeError):
    """Genome operation applied to the wrong variant."""


class PolicyOutputError(TrackevoError):
    """Network output without a unique winner for steering or throttle."""


class SteeringError(TrackevoError, ValueError):
    pass
