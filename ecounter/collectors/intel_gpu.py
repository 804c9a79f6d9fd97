"""
Intel GPU Energy Collector
Reads the package energy counter the i915/xe drivers expose through hwmon.

Data Center GPU Max 1550 cards carry two tiles behind a single counter; each
tile gets its own unit and the counter is split between them.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from ecounter.collectors.base import EnergyComponent
from ecounter.core.errors import BackendError
from ecounter.core.schema import ComponentKind, RawSample, Unit, UnitType, Vendor
from ecounter.core.utils import get_monotonic_ns, read_sysfs_int

logger = logging.getLogger(__name__)

DRM_SYSFS_ROOT = "/sys/class/drm"
INTEL_PCI_VENDOR_ID = 0x8086
MAX_1550_DEVICE_IDS = {0x0BD5}

# energy1_input is in microjoules
HWMON_ENERGY_RESOLUTION = 1e-6

_card_re = re.compile(r"^card(\d+)$")


def parse_pci_bus(address: str) -> int:
    """Bus number of a PCI address such as ``0000:3a:00.0``."""
    return int(address.split(":")[-2], 16)


class IntelGPUComponent(EnergyComponent):
    """Energy counters of Intel discrete GPUs. Counters are 64-bit."""

    kind = ComponentKind.INTEL_GPUS
    unit_type = UnitType.GPU

    def __init__(self, *args, drm_root: str = DRM_SYSFS_ROOT, **kwargs):
        super().__init__(*args, **kwargs)
        self.vendor = Vendor.INTEL
        self.drm_root = Path(drm_root)
        self._energy_paths: Dict[int, Path] = {}

    def _find_energy_file(self, device: Path) -> Optional[Path]:
        candidates = sorted(device.glob("hwmon/hwmon*/energy1_input"))
        return candidates[0] if candidates else None

    def discover(self) -> List[Unit]:
        if not self.drm_root.is_dir():
            logger.info(f"{self.drm_root} not found, no Intel GPU")
            return []

        cards = []
        for entry in self.drm_root.iterdir():
            match = _card_re.match(entry.name)
            if match:
                cards.append((int(match.group(1)), entry))
        cards.sort(key=lambda item: item[0])

        units: List[Unit] = []
        for card_index, card in cards:
            device = card / "device"
            if read_sysfs_int(device / "vendor", 16) != INTEL_PCI_VENDOR_ID:
                continue

            energy_path = self._find_energy_file(device)
            if energy_path is None:
                logger.debug(f"card{card_index}: no hwmon energy counter, skipped")
                continue

            try:
                bus_id = parse_pci_bus(device.resolve().name)
            except (IndexError, ValueError) as e:
                raise BackendError(f"Failed to get PCI ID of card{card_index}", unit=self.name) from e

            device_id = read_sysfs_int(device / "device", 16)
            tiles = 2 if device_id in MAX_1550_DEVICE_IDS else 1
            model = "Max 1550" if tiles == 2 else (f"{device_id:#06x}" if device_id else None)

            first_index = len(units)
            for _ in range(tiles):
                unit_id = len(units)
                units.append(
                    Unit(
                        id=unit_id,
                        output_name=f"gpu_{bus_id:02x}_{unit_id}_energy",
                        bus_id=bus_id,
                        model=model,
                    )
                )
                self._energy_paths[unit_id] = energy_path

            if tiles == 2:
                self.pairs.pair(first_index, first_index + 1)

        return units

    def read_sample(self, unit: Unit) -> RawSample:
        energy_path = self._energy_paths[unit.id]
        energy_uj = read_sysfs_int(energy_path)
        if energy_uj is None:
            raise BackendError(f"Failed to read {energy_path}", unit=self.unit_label(unit))

        return RawSample(
            raw_counter=energy_uj,
            timestamp_ns=get_monotonic_ns(),
            resolution=HWMON_ENERGY_RESOLUTION,
        )

    def release(self) -> None:
        self._energy_paths.clear()
