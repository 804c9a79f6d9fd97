"""
Paired-Die Attribution Engine
Splits the energy of one hardware counter shared by two dies (MI250 GCDs,
multi-tile Intel GPUs) into per-die shares.

Model:
1) each die is credited a fixed idle floor (idle power * elapsed seconds)
2) the remaining, load-dependent energy is split by a linear model of the
   utilization difference centered at 0.5
3) idle floor + active share is added to each die's accumulator
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from ecounter.accounting.accumulator import add_interval_energy, compute_interval_energy
from ecounter.core.config import IDLE_POWER_PER_DIE_W
from ecounter.core.schema import RawSample, Unit
from ecounter.core.utils import ns_to_s

logger = logging.getLogger(__name__)

# Ratio shift per percentage point of utilization difference
UTILIZATION_SLOPE = 0.005


def utilization_ratio(
    primary_pct: Optional[float],
    secondary_pct: Optional[float],
) -> float:
    """
    Share of the active energy attributed to the primary die, in [0, 1].

    Missing utilization on either die means an equal split.
    """
    if primary_pct is None or secondary_pct is None:
        return 0.5

    ratio = UTILIZATION_SLOPE * primary_pct - UTILIZATION_SLOPE * secondary_pct + 0.5
    return min(1.0, max(0.0, ratio))


def split_shared_energy(
    energy_j: float,
    elapsed_s: float,
    primary_pct: Optional[float],
    secondary_pct: Optional[float],
    idle_power_w: float = IDLE_POWER_PER_DIE_W,
) -> Tuple[float, float]:
    """
    Split the combined interval energy of two dies.

    Args:
        energy_j: Energy measured on the shared counter for the interval
        elapsed_s: Interval length in seconds
        primary_pct: Utilization of the die owning the counter (0-100)
        secondary_pct: Utilization of the paired die (0-100)
        idle_power_w: Power each die draws just for being powered on

    Returns:
        (primary_joules, secondary_joules). Their sum equals ``energy_j``
        unless the measured energy is below both idle floors combined.
    """
    idle_energy = idle_power_w * max(0.0, elapsed_s)
    active_energy = max(0.0, energy_j - 2 * idle_energy)
    ratio = utilization_ratio(primary_pct, secondary_pct)

    primary = idle_energy + ratio * active_energy
    secondary = idle_energy + (1.0 - ratio) * active_energy
    return primary, secondary


@dataclass(frozen=True)
class DiePair:
    """Indices of two units sharing one counter inside a component."""

    primary: int
    secondary: int


class PairingTable:
    """
    Explicit primary/secondary pairing of units, keyed by unit index.

    Built once during discovery and never modified afterwards.
    """

    def __init__(self) -> None:
        self._by_primary: Dict[int, int] = {}
        self._by_secondary: Dict[int, int] = {}

    def pair(self, primary: int, secondary: int) -> None:
        if primary == secondary:
            raise ValueError(f"Unit {primary} cannot be paired with itself")
        for index in (primary, secondary):
            if index in self._by_primary or index in self._by_secondary:
                raise ValueError(f"Unit {index} is already paired")
        self._by_primary[primary] = secondary
        self._by_secondary[secondary] = primary

    def secondary_of(self, primary: int) -> Optional[int]:
        return self._by_primary.get(primary)

    def primary_of(self, secondary: int) -> Optional[int]:
        return self._by_secondary.get(secondary)

    def peer_of(self, index: int) -> Optional[int]:
        return self._by_primary.get(index, self._by_secondary.get(index))

    def is_secondary(self, index: int) -> bool:
        return index in self._by_secondary

    def __iter__(self) -> Iterator[DiePair]:
        for primary, secondary in sorted(self._by_primary.items()):
            yield DiePair(primary, secondary)

    def __len__(self) -> int:
        return len(self._by_primary)


def attribute_shared_sample(
    primary: Unit,
    secondary: Unit,
    sample: RawSample,
    secondary_utilization_pct: Optional[float] = None,
    counter_width: Optional[int] = None,
    idle_power_w: float = IDLE_POWER_PER_DIE_W,
) -> Tuple[float, float]:
    """
    Apply one primary-die sample to both dies of a pair.

    Only the primary unit records raw counter state; the secondary receives
    its interval energy exclusively from here. Returns the two interval
    energies, (0, 0) on the bootstrap sample.
    """
    previous_ts = primary.timestamp_ns
    if secondary_utilization_pct is not None:
        secondary.utilization_pct = secondary_utilization_pct
    secondary.timestamp_ns = sample.timestamp_ns

    energy = compute_interval_energy(primary, sample, counter_width)
    if energy is None:
        return 0.0, 0.0

    elapsed_s = ns_to_s(sample.timestamp_ns - previous_ts) if previous_ts is not None else 0.0
    primary_j, secondary_j = split_shared_energy(
        energy,
        elapsed_s,
        primary.utilization_pct,
        secondary.utilization_pct,
        idle_power_w,
    )

    add_interval_energy(primary, primary_j)
    add_interval_energy(secondary, secondary_j)

    logger.debug(
        f"{primary.output_name}+{secondary.output_name}: {energy:.1f} J over {elapsed_s:.2f} s "
        f"split {primary_j:.1f}/{secondary_j:.1f} J "
        f"(util {primary.utilization_pct}/{secondary.utilization_pct} %)"
    )
    return primary_j, secondary_j
