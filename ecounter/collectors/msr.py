"""
RAPL Package Energy through MSRs
Shared base of the CPU package and DRAM collectors.

Each physical package is read through one of its logical CPUs in
/dev/cpu/N/msr (msr kernel module, root privileges). The energy status
registers are 32 bits wide and wrap around.
"""

import logging
from typing import Dict, List

from ecounter.accounting.accumulator import MSR_COUNTER_WIDTH
from ecounter.collectors.base import EnergyComponent
from ecounter.core.errors import BackendError
from ecounter.core.schema import RawSample, Unit, Vendor
from ecounter.core.utils import (
    CPU_SYSFS_ROOT,
    cpu_package_to_core,
    detect_cpu_vendor,
    get_monotonic_ns,
    read_msr,
)

logger = logging.getLogger(__name__)

POWER_UNIT_REGISTERS = {
    Vendor.INTEL: 0x606,
    Vendor.AMD: 0xC0010299,
}

ENERGY_STATUS_MASK = 0xFFFFFFFF
ENERGY_UNIT_SHIFT = 8
ENERGY_UNIT_MASK = 0x1F


def energy_resolution(power_unit_register: int) -> float:
    """Joules per count from the Energy Status Units field (bits 12:8)."""
    return 0.5 ** ((power_unit_register >> ENERGY_UNIT_SHIFT) & ENERGY_UNIT_MASK)


class MSRPackageComponent(EnergyComponent):
    """One unit per physical package, read from a vendor energy status MSR."""

    counter_width = MSR_COUNTER_WIDTH
    energy_registers: Dict[Vendor, int] = {}
    output_template = "package_{id}_energy"

    def __init__(
        self,
        *args,
        cpuinfo_path: str = "/proc/cpuinfo",
        cpu_sysfs_root: str = CPU_SYSFS_ROOT,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.cpuinfo_path = cpuinfo_path
        self.cpu_sysfs_root = cpu_sysfs_root
        self._package_to_core: Dict[int, int] = {}

    def discover(self) -> List[Unit]:
        self.vendor = detect_cpu_vendor(self.cpuinfo_path)
        if self.vendor not in self.energy_registers:
            logger.info(f"No {self.unit_type.value} energy counter for CPU vendor {self.vendor.value}")
            return []

        self._package_to_core = cpu_package_to_core(self.cpu_sysfs_root)
        if not self._package_to_core:
            raise BackendError(f"No CPU package found under {self.cpu_sysfs_root}", unit=self.name)

        return [
            Unit(id=package_id, output_name=self.output_template.format(id=package_id))
            for package_id in sorted(self._package_to_core)
        ]

    def read_sample(self, unit: Unit) -> RawSample:
        core = self._package_to_core[unit.id]
        try:
            raw = read_msr(core, self.energy_registers[self.vendor]) & ENERGY_STATUS_MASK
            timestamp_ns = get_monotonic_ns()

            resolution = None
            if unit.resolution is None:
                resolution = energy_resolution(read_msr(core, POWER_UNIT_REGISTERS[self.vendor]))
        except BackendError as e:
            raise BackendError(str(e), unit=self.unit_label(unit)) from e

        return RawSample(raw_counter=raw, timestamp_ns=timestamp_ns, resolution=resolution)

    def unit_label(self, unit: Unit) -> str:
        return f"{self.name} package {unit.id}"
