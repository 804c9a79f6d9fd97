"""
Energy Component Base
The {init, update, fini} capability every vendor backend implements.

A component owns a fixed list of units discovered at start. Backends only
provide discovery and raw reads; accumulation, die-pair attribution and the
output files are handled here so they behave the same for every vendor.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from ecounter.accounting.accumulator import accumulate, compute_interval_energy
from ecounter.accounting.attribution import PairingTable, attribute_shared_sample
from ecounter.core.config import IDLE_POWER_PER_DIE_W
from ecounter.core.output import EnergyFile
from ecounter.core.schema import ComponentKind, RawSample, Unit, UnitReport, UnitType, Vendor

logger = logging.getLogger(__name__)


class EnergyComponent(ABC):
    """
    A homogeneous group of units sharing one backend.

    Subclasses implement ``discover`` and ``read_sample``; ``read_utilization``
    and ``release`` are optional hooks.
    """

    kind: ComponentKind
    unit_type: UnitType = UnitType.UNKNOWN
    # Bit width of wrapping counters, None for counters that never wrap
    counter_width: Optional[int] = None
    # Whether units need a first raw sample before they can accumulate
    bootstrap: bool = True

    def __init__(
        self,
        output_dir: Union[str, Path],
        verbose: bool = False,
        disabled: bool = False,
        idle_power_w: float = IDLE_POWER_PER_DIE_W,
    ):
        self.output_dir = Path(output_dir)
        self.verbose = verbose
        self.disabled = disabled
        self.idle_power_w = idle_power_w
        self.vendor = Vendor.UNKNOWN

        self.units: List[Unit] = []
        self.pairs = PairingTable()
        self._files: Dict[int, EnergyFile] = {}
        self._initialized = False

    @property
    def name(self) -> str:
        if self.vendor is Vendor.UNKNOWN:
            return self.unit_type.value
        return f"{self.vendor.value} {self.unit_type.value}"

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def discover(self) -> List[Unit]:
        """Enumerate units (and register pairs in ``self.pairs``)."""

    @abstractmethod
    def read_sample(self, unit: Unit) -> RawSample:
        """Fetch the raw counter of one unit. Raise BackendError on failure."""

    def read_utilization(self, unit: Unit) -> Optional[float]:
        """Utilization of a unit whose counter is read through its peer."""
        return None

    def release(self) -> None:
        """Release backend handles."""

    def unit_label(self, unit: Unit) -> str:
        return f"{self.name} {unit.id}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, open_files: bool = True) -> List[Unit]:
        """
        Discover units, read their first sample and open their output files.

        With ``open_files=False`` the output files are left untouched, so a
        running daemon's files survive a discovery-only pass.
        """
        if self.disabled:
            logger.debug(f"{self.name} support disabled")
            return []

        self._initialized = True
        self.units = self.discover()

        if self.verbose:
            logger.info(f"{len(self.units)} {self.name} unit(s) found")
        for pair in self.pairs:
            logger.info(
                f"{self.unit_label(self.units[pair.primary])} and "
                f"{self.unit_label(self.units[pair.secondary])} share one energy counter"
            )

        for index, unit in enumerate(self.units):
            if self.bootstrap and not self.pairs.is_secondary(index):
                compute_interval_energy(
                    unit, self.read_sample(unit), self.counter_width, self.unit_label(unit)
                )
            if open_files:
                self._files[index] = EnergyFile(self.output_dir / unit.output_name).open()

        return self.units

    def update(self) -> None:
        """Refresh every unit and rewrite its output file."""
        if not self.units:
            return

        self.collect()
        self.publish()

    def collect(self) -> None:
        """Fold one raw sample per hardware counter into the accumulators."""
        for index, unit in enumerate(self.units):
            if self.pairs.is_secondary(index):
                continue

            sample = self.read_sample(unit)
            secondary_index = self.pairs.secondary_of(index)

            if secondary_index is None:
                accumulate(unit, sample, self.counter_width, self.unit_label(unit))
                continue

            secondary = self.units[secondary_index]
            attribute_shared_sample(
                unit,
                secondary,
                sample,
                secondary_utilization_pct=self.read_utilization(secondary),
                counter_width=self.counter_width,
                idle_power_w=self.idle_power_w,
            )

    def publish(self) -> None:
        """Rewrite the output files and report the tick."""
        log = logger.info if self.verbose else logger.debug

        for index, unit in enumerate(self.units):
            self._files[index].write(unit.accumulated_energy)
            log(
                f"{self.unit_label(unit)}: {unit.last_interval_energy:.0f} J "
                f"(accumulator: {unit.accumulated_energy:.0f} J, raw: {unit.raw_counter})"
            )

    def fini(self) -> None:
        """Close output files and release the backend. Safe to call twice."""
        for energy_file in self._files.values():
            energy_file.close()
        self._files.clear()

        if self._initialized:
            self._initialized = False
            self.release()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def interval_energies(self) -> List[float]:
        return [unit.last_interval_energy for unit in self.units]

    def describe(self) -> List[UnitReport]:
        reports = []
        for index, unit in enumerate(self.units):
            peer = self.pairs.peer_of(index)
            reports.append(
                UnitReport(
                    component=self.name,
                    unit_id=unit.id,
                    output_name=unit.output_name,
                    interval_energy=unit.last_interval_energy,
                    accumulated_energy=unit.accumulated_energy,
                    raw_counter=unit.raw_counter,
                    bus_id=unit.bus_id,
                    peer_id=self.units[peer].id if peer is not None else None,
                    extras={"model": unit.model} if unit.model else {},
                )
            )
        return reports
