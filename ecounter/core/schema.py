"""
ECounter Data Schema Definitions
Dataclasses for metering units, raw counter samples and overhead statistics.
"""

import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional


class Vendor(Enum):
    """Hardware vendor of a component."""

    AMD = "AMD"
    INTEL = "INTEL"
    NVIDIA = "NVIDIA"
    UNKNOWN = "unknown"


class UnitType(Enum):
    """Kind of device a unit meters."""

    CPU = "CPU"
    GPU = "GPU"
    DRAM = "DRAM"
    MOCK = "MOCK"
    UNKNOWN = "unknown"


class ComponentKind(Enum):
    """Backends in registry order. The value is the CLI/config name."""

    AMD_GPUS = "gpu-amd"
    INTEL_GPUS = "gpu-intel"
    NVIDIA_GPUS = "gpu-nvidia"
    CPUS = "cpu"
    DRAMS = "dram"
    MOCKS = "mock"

    @classmethod
    def from_name(cls, name: str) -> "ComponentKind":
        """Resolve a CLI/config name such as ``gpu-amd`` or ``cpu``."""
        normalized = name.strip().lower().replace("_", "-")
        for kind in cls:
            if kind.value == normalized:
                return kind
        valid = ", ".join(k.value for k in cls)
        raise ValueError(f"Unknown component '{name}' (expected one of: {valid})")


@dataclass(frozen=True)
class RawSample:
    """One reading delivered by a backend for one unit.

    ``resolution`` converts raw counts to Joules; None when the unit already
    caches it.
    """

    raw_counter: int
    timestamp_ns: int
    resolution: Optional[float] = None
    utilization_pct: Optional[float] = None


@dataclass
class Unit:
    """One logical energy-metering endpoint.

    ``raw_counter`` and ``resolution`` stay None until the first successful
    fetch. ``accumulated_energy`` only grows for the lifetime of the process.
    """

    id: int
    output_name: str
    bus_id: Optional[int] = None
    model: Optional[str] = None
    serial: str = ""
    raw_counter: Optional[int] = None
    resolution: Optional[float] = None
    timestamp_ns: Optional[int] = None
    utilization_pct: Optional[float] = None
    accumulated_energy: float = 0.0
    last_interval_energy: float = 0.0
    fixed_watts: Optional[float] = None

    @property
    def is_bootstrapped(self) -> bool:
        return self.raw_counter is not None


@dataclass
class OverheadStats:
    """Streaming statistics of the power not covered by monitored devices."""

    min: float = math.inf
    max: float = 0.0
    moving_average: float = 0.0
    sample_count: int = 0

    def update(self, overhead_w: float) -> None:
        self.min = min(self.min, overhead_w)
        self.max = max(self.max, overhead_w)
        self.moving_average = (
            self.moving_average * self.sample_count + overhead_w
        ) / (self.sample_count + 1)
        self.sample_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_w": self.min if self.sample_count else None,
            "max_w": self.max,
            "moving_average_w": self.moving_average,
            "sample_count": self.sample_count,
        }


@dataclass
class UnitReport:
    """Snapshot of a unit after a tick, used for logging and `probe` output."""

    component: str
    unit_id: int
    output_name: str
    interval_energy: float
    accumulated_energy: float
    raw_counter: Optional[int] = None
    bus_id: Optional[int] = None
    peer_id: Optional[int] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
