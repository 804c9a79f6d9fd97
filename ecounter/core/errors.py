"""
ECounter Errors
Exception taxonomy for fatal conditions. Wraparound and empty overhead
samples are not errors and never surface here.
"""

from typing import Optional


class EnergyCounterError(RuntimeError):
    """Base class for every fatal ecounter condition."""


class ConfigurationError(EnergyCounterError):
    """Invalid configuration or unusable output directory."""


class NodePowerError(ConfigurationError):
    """The node power command failed or did not print a positive integer."""


class BackendError(EnergyCounterError):
    """A vendor backend failed to initialize or to deliver a sample."""

    def __init__(self, message: str, unit: Optional[str] = None):
        self.unit = unit
        if unit:
            message = f"{unit}: {message}"
        super().__init__(message)


class CounterRegressionError(EnergyCounterError):
    """A counter documented as non-wrapping went backwards."""

    def __init__(self, unit: str, previous: int, current: int):
        self.unit = unit
        self.previous = previous
        self.current = current
        super().__init__(
            f"{unit}: energy counter decreased from {previous} to {current} "
            "(hardware or driver malfunction)"
        )


class OutputFileError(EnergyCounterError):
    """An output file could not be opened or written."""
