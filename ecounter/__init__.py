"""
Energy Counter (ecounter)

Sampling daemon that turns CPU package, DRAM and GPU hardware energy
counters into per-device accumulated energy files, with optional estimation
of the node power left unaccounted for by the monitored devices.

Licensed under the MIT License.
"""

__version__ = "1.0.0"

from ecounter.core.config import EcounterConfig
from ecounter.core.schema import (
    ComponentKind,
    OverheadStats,
    RawSample,
    Unit,
    UnitReport,
)
from ecounter.accounting import (
    OverheadEstimator,
    PairingTable,
    accumulate,
    split_shared_energy,
)
from ecounter.scheduler import Ecounter, Scheduler

__all__ = [
    "__version__",
    "EcounterConfig",
    "ComponentKind",
    "OverheadStats",
    "RawSample",
    "Unit",
    "UnitReport",
    "OverheadEstimator",
    "PairingTable",
    "accumulate",
    "split_shared_energy",
    "Ecounter",
    "Scheduler",
]
