"""
AMD GPU Energy Collector
Reads accumulated energy counters of AMD Instinct GPUs through rocm-smi.

On MI250 boards both GCDs report the same package counter. The two GCDs of a
board are paired so the counter is read once and split by utilization.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from ecounter.collectors.base import EnergyComponent
from ecounter.core.errors import BackendError
from ecounter.core.schema import ComponentKind, RawSample, Unit, UnitType, Vendor
from ecounter.core.utils import get_monotonic_ns, run_command

logger = logging.getLogger(__name__)

MI250_SUBSYSTEM_ID = 2828  # 0x0b0c

# Used when the counter is still zero and the resolution cannot be derived
DEFAULT_ENERGY_RESOLUTION_UJ = 15.259

_card_re = re.compile(r"^card(\d+)$")


def _field(data: Dict[str, Any], *names: str) -> Optional[str]:
    """Look up a rocm-smi JSON field, ignoring case and spacing differences."""
    normalized = {re.sub(r"\s+", " ", k).strip().lower(): v for k, v in data.items()}
    for name in names:
        value = normalized.get(name.lower())
        if value is not None and str(value).strip() not in ("", "N/A"):
            return str(value).strip()
    return None


def parse_bus_id(pci_bus: str) -> int:
    """Extract the bus number from a PCI address such as ``0000:C1:00.0``."""
    parts = pci_bus.split(":")
    if len(parts) < 2:
        raise ValueError(f"Unexpected PCI address: {pci_bus}")
    return int(parts[-2], 16)


def parse_subsystem_id(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    except ValueError:
        return None


def is_mi250(card: Dict[str, Any]) -> bool:
    """Whether rocm-smi product info identifies an MI250-class board."""
    subsystem = parse_subsystem_id(_field(card, "Subsystem ID", "Card SKU"))
    if subsystem == MI250_SUBSYSTEM_ID:
        return True

    series = _field(card, "Card Series", "Card series", "Card Model") or ""
    return "MI250" in series.upper()


class AMDGPUComponent(EnergyComponent):
    """
    Energy counters of every AMD GPU visible to rocm-smi.

    Counters are 64-bit and never wrap.
    """

    kind = ComponentKind.AMD_GPUS
    unit_type = UnitType.GPU

    def __init__(self, *args, rocm_smi: str = "rocm-smi", **kwargs):
        super().__init__(*args, **kwargs)
        self.vendor = Vendor.AMD
        self.rocm_smi = rocm_smi

    def _query(self, args: List[str], label: str) -> Dict[str, Any]:
        """Run rocm-smi with --json and decode the output."""
        result = run_command([self.rocm_smi, *args, "--json"])
        if not result:
            raise BackendError(f"rocm-smi {' '.join(args)} failed", unit=label)

        try:
            data = json.loads(result)
        except json.JSONDecodeError as e:
            raise BackendError(f"Unparsable rocm-smi output: {e}", unit=label) from e

        if not isinstance(data, dict):
            raise BackendError("Unexpected rocm-smi output layout", unit=label)
        return data

    def _query_card(self, unit: Unit, args: List[str]) -> Dict[str, Any]:
        label = self.unit_label(unit)
        data = self._query(["-d", str(unit.id), *args], label)
        card = data.get(f"card{unit.id}")
        if not isinstance(card, dict):
            raise BackendError(f"card{unit.id} missing from rocm-smi output", unit=label)
        return card

    def discover(self) -> List[Unit]:
        if run_command([self.rocm_smi, "--version"]) is None:
            logger.info("rocm-smi not available, no AMD GPU")
            return []

        data = self._query(["--showserial", "--showbus", "--showproductname"], self.name)

        cards = []
        for key, card in data.items():
            match = _card_re.match(key)
            if match and isinstance(card, dict):
                cards.append((int(match.group(1)), card))
        cards.sort(key=lambda item: item[0])

        units: List[Unit] = []
        for device_id, card in cards:
            pci_bus = _field(card, "PCI Bus")
            if not pci_bus:
                raise BackendError("Failed to get PCI ID", unit=f"{self.name} {device_id}")
            try:
                bus_id = parse_bus_id(pci_bus)
            except ValueError as e:
                raise BackendError(str(e), unit=f"{self.name} {device_id}") from e

            serial = _field(card, "Serial Number", "Serial number") or ""
            model = "MI250" if is_mi250(card) else _field(card, "Card Series", "Card series")

            unit = Unit(
                id=device_id,
                output_name=f"gpu_{bus_id:02x}_energy",
                bus_id=bus_id,
                model=model,
                serial=serial,
            )

            # Two consecutive MI250 GCDs with the same serial share a board
            if units and model == "MI250":
                prev_index = len(units) - 1
                prev = units[prev_index]
                if (
                    serial
                    and prev.serial == serial
                    and prev.model == "MI250"
                    and self.pairs.peer_of(prev_index) is None
                ):
                    self.pairs.pair(prev_index, len(units))

            units.append(unit)

        return units

    def read_sample(self, unit: Unit) -> RawSample:
        card = self._query_card(unit, ["--showenergycounter", "--showuse"])
        timestamp_ns = get_monotonic_ns()
        label = self.unit_label(unit)

        counter = _field(card, "Energy counter")
        if counter is None:
            raise BackendError("Failed to get energy counter", unit=label)
        try:
            raw = int(float(counter))
        except ValueError as e:
            raise BackendError(f"Invalid energy counter {counter!r}", unit=label) from e

        resolution = None
        if unit.resolution is None:
            resolution = self._derive_resolution(card, raw)

        return RawSample(
            raw_counter=raw,
            timestamp_ns=timestamp_ns,
            resolution=resolution,
            utilization_pct=self._parse_use(card),
        )

    def read_utilization(self, unit: Unit) -> Optional[float]:
        card = self._query_card(unit, ["--showuse"])
        use = self._parse_use(card)
        if use is None:
            raise BackendError("Failed to get GPU utilization", unit=self.unit_label(unit))
        return use

    @staticmethod
    def _parse_use(card: Dict[str, Any]) -> Optional[float]:
        value = _field(card, "GPU use (%)")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    @staticmethod
    def _derive_resolution(card: Dict[str, Any], raw: int) -> float:
        """Joules per count, from the accumulated microjoules reported alongside."""
        accumulated = _field(card, "Accumulated Energy (uJ)")
        if accumulated is not None and raw > 0:
            try:
                return float(accumulated) / raw / 1e6
            except ValueError:
                pass
        return DEFAULT_ENERGY_RESOLUTION_UJ / 1e6
