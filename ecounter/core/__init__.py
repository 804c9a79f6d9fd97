"""
ECounter Core Module - Schemas, configuration, errors, output files and utilities.
"""

from ecounter.core.config import EcounterConfig
from ecounter.core.errors import (
    EnergyCounterError,
    ConfigurationError,
    NodePowerError,
    BackendError,
    CounterRegressionError,
    OutputFileError,
)
from ecounter.core.output import EnergyFile
from ecounter.core.schema import *

__all__ = [
    "EcounterConfig",
    "EnergyFile",
    "EnergyCounterError",
    "ConfigurationError",
    "NodePowerError",
    "BackendError",
    "CounterRegressionError",
    "OutputFileError",
]
