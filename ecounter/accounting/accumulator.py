"""
Counter Accumulator
Turns successive raw counter samples into a monotonic Joule accumulator.

Two counter families exist:

- fixed-width counters (RAPL MSRs are 32 bits) roll over to zero, and a
  smaller reading is compensated as a wraparound;
- wide counters (GPU SDKs) are documented never to roll over, and a smaller
  reading means the hardware or driver is broken.
"""

import logging
from typing import Optional

from ecounter.core.errors import BackendError, CounterRegressionError
from ecounter.core.schema import RawSample, Unit

logger = logging.getLogger(__name__)

MSR_COUNTER_WIDTH = 32


def counter_delta(
    previous: int,
    current: int,
    counter_width: Optional[int] = None,
    unit_label: str = "unit",
) -> int:
    """
    Raw counts elapsed between two readings.

    Args:
        previous: Last observed raw value
        current: Newly observed raw value
        counter_width: Bit width of a wrapping counter, None for wide counters
        unit_label: Name used in the error message

    Raises:
        CounterRegressionError: A wide counter went backwards
    """
    if current >= previous:
        return current - previous

    if counter_width is None:
        raise CounterRegressionError(unit_label, previous, current)

    delta = ((1 << counter_width) - previous) + current
    logger.debug(f"{unit_label}: counter wraparound ({previous} -> {current}, delta {delta})")
    return delta


def compute_interval_energy(
    unit: Unit,
    sample: RawSample,
    counter_width: Optional[int] = None,
    unit_label: Optional[str] = None,
) -> Optional[float]:
    """
    Record a sample on the unit and return the Joules elapsed since the last one.

    Returns None for the first sample of a unit (bootstrap), which only stores
    the raw value, the resolution and the timestamp. The resolution is cached
    on first sight and never replaced.
    """
    label = unit_label or unit.output_name

    if unit.resolution is None:
        if sample.resolution is None:
            raise BackendError("no energy resolution available", unit=label)
        unit.resolution = sample.resolution

    previous = unit.raw_counter
    unit.raw_counter = sample.raw_counter
    unit.timestamp_ns = sample.timestamp_ns
    if sample.utilization_pct is not None:
        unit.utilization_pct = sample.utilization_pct

    if previous is None:
        return None

    delta = counter_delta(previous, sample.raw_counter, counter_width, label)
    return delta * unit.resolution


def accumulate(
    unit: Unit,
    sample: RawSample,
    counter_width: Optional[int] = None,
    unit_label: Optional[str] = None,
) -> float:
    """
    Fold a sample into the unit accumulator and return the interval energy.

    The bootstrap sample yields 0 and leaves the accumulator untouched.
    """
    energy = compute_interval_energy(unit, sample, counter_width, unit_label)
    if energy is None:
        return 0.0

    add_interval_energy(unit, energy)
    return energy


def add_interval_energy(unit: Unit, energy: float) -> None:
    """Credit energy computed elsewhere (attribution, mocks) to a unit."""
    if energy < 0:
        raise ValueError(f"Interval energy cannot be negative: {energy}")
    unit.last_interval_energy = energy
    unit.accumulated_energy += energy
