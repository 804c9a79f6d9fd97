"""
CPU Package Energy Collector
RAPL package domain: PKG_ENERGY_STATUS on Intel, Core::X86::Msr::PKG_ENERGY_STAT on AMD.
"""

from ecounter.collectors.msr import MSRPackageComponent
from ecounter.core.schema import ComponentKind, UnitType, Vendor


class CPUComponent(MSRPackageComponent):
    kind = ComponentKind.CPUS
    unit_type = UnitType.CPU
    energy_registers = {
        Vendor.INTEL: 0x611,
        Vendor.AMD: 0xC001029B,
    }
    output_template = "cpu_package_{id}_energy"
