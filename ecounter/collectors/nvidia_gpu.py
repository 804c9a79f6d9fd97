"""
NVIDIA GPU Energy Collector
Total energy consumption (millijoules since driver load) through NVML.
"""

import logging
from typing import Any, Dict, List, Optional

import pynvml

from ecounter.collectors.base import EnergyComponent
from ecounter.core.errors import BackendError
from ecounter.core.schema import ComponentKind, RawSample, Unit, UnitType, Vendor
from ecounter.core.utils import get_monotonic_ns

logger = logging.getLogger(__name__)

# nvmlDeviceGetTotalEnergyConsumption reports millijoules
NVML_ENERGY_RESOLUTION = 1e-3

# NVML failures meaning "no NVIDIA GPU on this node" rather than a broken one
_ABSENT_ERRORS = (
    pynvml.NVML_ERROR_LIBRARY_NOT_FOUND,
    pynvml.NVML_ERROR_DRIVER_NOT_LOADED,
)


class NvidiaGPUComponent(EnergyComponent):
    """Energy counters of every GPU enumerated by NVML. Counters never wrap."""

    kind = ComponentKind.NVIDIA_GPUS
    unit_type = UnitType.GPU

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.vendor = Vendor.NVIDIA
        self._handles: Dict[int, Any] = {}
        self._nvml_ready = False

    def discover(self) -> List[Unit]:
        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as e:
            if e.value in _ABSENT_ERRORS:
                logger.info(f"NVML not available, no NVIDIA GPU ({e})")
                return []
            raise BackendError(f"Unable to initialize NVML: {e}") from e
        self._nvml_ready = True

        units = []
        try:
            count = pynvml.nvmlDeviceGetCount()
            for index in range(count):
                handle = pynvml.nvmlDeviceGetHandleByIndex(index)
                bus_id = pynvml.nvmlDeviceGetPciInfo(handle).bus
                name = pynvml.nvmlDeviceGetName(handle)
                if isinstance(name, bytes):
                    name = name.decode()

                self._handles[index] = handle
                units.append(
                    Unit(
                        id=index,
                        output_name=f"gpu_{bus_id:02x}_energy",
                        bus_id=bus_id,
                        model=name,
                    )
                )
        except pynvml.NVMLError as e:
            raise BackendError(f"Unable to enumerate devices: {e}", unit=self.name) from e

        return units

    def read_sample(self, unit: Unit) -> RawSample:
        handle = self._handles[unit.id]
        try:
            energy_mj = pynvml.nvmlDeviceGetTotalEnergyConsumption(handle)
        except pynvml.NVMLError as e:
            raise BackendError(f"Failed to get energy consumption: {e}", unit=self.unit_label(unit)) from e

        return RawSample(
            raw_counter=int(energy_mj),
            timestamp_ns=get_monotonic_ns(),
            resolution=NVML_ENERGY_RESOLUTION,
            utilization_pct=self.read_utilization(unit),
        )

    def read_utilization(self, unit: Unit) -> Optional[float]:
        try:
            return float(pynvml.nvmlDeviceGetUtilizationRates(self._handles[unit.id]).gpu)
        except pynvml.NVMLError as e:
            logger.debug(f"{self.unit_label(unit)}: utilization unavailable ({e})")
            return None

    def release(self) -> None:
        self._handles.clear()
        if self._nvml_ready:
            self._nvml_ready = False
            pynvml.nvmlShutdown()
