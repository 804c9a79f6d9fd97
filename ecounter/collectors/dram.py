"""
DRAM Energy Collector
RAPL DRAM domain (DRAM_ENERGY_STATUS), available on Intel server parts only.
"""

from ecounter.collectors.msr import MSRPackageComponent
from ecounter.core.schema import ComponentKind, UnitType, Vendor


class DRAMComponent(MSRPackageComponent):
    kind = ComponentKind.DRAMS
    unit_type = UnitType.DRAM
    energy_registers = {
        Vendor.INTEL: 0x619,
    }
    output_template = "dram_package_{id}_energy"
