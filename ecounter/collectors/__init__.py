"""
ECounter Collectors Module - Vendor backends and the component registry.
"""

import logging
from typing import List

from ecounter.collectors.amd_gpu import AMDGPUComponent
from ecounter.collectors.base import EnergyComponent
from ecounter.collectors.cpu import CPUComponent
from ecounter.collectors.dram import DRAMComponent
from ecounter.collectors.intel_gpu import IntelGPUComponent
from ecounter.collectors.mock import MockComponent
from ecounter.collectors.nvidia_gpu import NvidiaGPUComponent
from ecounter.core.config import EcounterConfig
from ecounter.core.schema import ComponentKind

logger = logging.getLogger(__name__)

# Registry order: GPUs first, then packages, then mocks
COMPONENT_CLASSES = {
    ComponentKind.AMD_GPUS: AMDGPUComponent,
    ComponentKind.INTEL_GPUS: IntelGPUComponent,
    ComponentKind.NVIDIA_GPUS: NvidiaGPUComponent,
    ComponentKind.CPUS: CPUComponent,
    ComponentKind.DRAMS: DRAMComponent,
    ComponentKind.MOCKS: MockComponent,
}


def build_components(config: EcounterConfig) -> List[EnergyComponent]:
    """Instantiate every component in registry order."""
    components = []
    for kind, component_class in COMPONENT_CLASSES.items():
        kwargs = dict(
            output_dir=config.output_dir,
            verbose=config.verbose,
            disabled=config.is_disabled(kind),
            idle_power_w=config.idle_power_w,
        )
        if kind is ComponentKind.MOCKS:
            kwargs.update(watts=config.mock_watts, interval_s=config.interval_s)
        components.append(component_class(**kwargs))

    logger.debug(f"Registered components: {', '.join(c.kind.value for c in components)}")
    return components


__all__ = [
    "AMDGPUComponent",
    "CPUComponent",
    "DRAMComponent",
    "EnergyComponent",
    "IntelGPUComponent",
    "MockComponent",
    "NvidiaGPUComponent",
    "COMPONENT_CLASSES",
    "build_components",
]
